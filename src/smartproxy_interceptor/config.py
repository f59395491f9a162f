from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SPM_HOST = "http://proxy.zyte.com:8011"
DEFAULT_STATIC_BYPASS_REGEX = (
    r".*?\.(?:txt|json|css|less|gif|ico|jpe?g|svg|png|webp"
    r"|mkv|mp4|mpe?g|webm|eot|ttf|woff2?)$"
)
DEFAULT_HEADERS = {
    "X-Crawlera-No-Bancheck": "1",
    "X-Crawlera-Profile": "pass",
    "X-Crawlera-Cookies": "disable",
}


class Settings(BaseSettings):
    """Interceptor settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Smart Proxy Manager
    spm_apikey: str = ""
    spm_host: str = DEFAULT_SPM_HOST
    spm_headers: dict[str, str] = DEFAULT_HEADERS

    # Static content bypass
    static_bypass: bool = True
    static_bypass_regex: str = DEFAULT_STATIC_BYPASS_REGEX

    # Proxy protocol headers
    session_header: str = "X-Crawlera-Session"
    client_header: str = "X-Crawlera-Client"
    error_header: str = "X-Crawlera-Error"
    bad_session_value: str = "bad_session_id"

    # Driving framework name, used in the client identity string
    framework: str = "patchright"

    # Timeouts (seconds)
    session_timeout: float = 30.0
    bypass_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"


settings = Settings()
