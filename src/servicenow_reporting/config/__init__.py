"""
ServiceNow report processor 설정 모듈

- YAML 설정 파일 (servicenow_reporting.yaml)
- hiera-eyaml 암호화 값 복호화
- 환경변수 우선

Import ``Settings`` / ``load_settings`` from ``servicenow_reporting.config.settings``.
"""
