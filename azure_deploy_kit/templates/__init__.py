"""잘 알려진 배포 프로필별 ARM 템플릿 (JSON)."""
