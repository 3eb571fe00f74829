"""
azure_deploy_kit
----------------

Azure Functions 용 배포 CLI 패키지.
ARM 템플릿으로 Function App 인프라를 프로비저닝하고, Kudu zipdeploy 로 코드를 업로드한 뒤
트리거 메타데이터를 동기화하는 과정을 환경변수 기반 설정으로 한 번에 수행하는 것을 목표로 한다.
"""

__all__ = [
    "config",
    "orchestrator",
]
