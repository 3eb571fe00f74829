"""deploy-azure init 이 복사하는 env 템플릿."""
