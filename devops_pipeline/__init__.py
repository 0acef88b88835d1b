"""
DevOps 배포 파이프라인

소스 저장소 → 컨테이너 이미지 → 클러스터 배포를 한 번에 실행
"""
__version__ = "0.1.0"
