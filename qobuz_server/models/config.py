"""
Pydantic model for server configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_API_BASE = "https://www.qobuz.com/api.json/0.2/"

# Format IDs accepted by track/getFileUrl, with display metadata
QUALITY_MAP = {
    5: {
        "name": "MP3 320kbps",
        "short": "MP3 320",
        "ext": "mp3",
    },
    6: {
        "name": "CD Lossless (16/44.1)",
        "short": "16/44.1",
        "ext": "flac",
    },
    7: {
        "name": "Hi-Res (up to 24/96)",
        "short": "24/96",
        "ext": "flac",
    },
    27: {
        "name": "Hi-Res+ (up to 24/192)",
        "short": "24/192",
        "ext": "flac",
    },
}

FORMAT_MP3 = 5
FORMAT_CD = 6
FORMAT_HIRES = 7
FORMAT_HIRES_PLUS = 27


def get_quality_info(format_id: int) -> dict[str, str]:
    """Gets all information for a given format ID from the central map."""
    return QUALITY_MAP.get(
        format_id,
        {
            "name": "Unknown",
            "short": "Unknown",
            "ext": "flac",
        },
    )


class ServerConfig(BaseModel):
    """A validated configuration model for the acquisition server."""

    # Catalog API
    app_id: str = ""
    app_secret: str = Field("", repr=False)
    auth_tokens: list[str] = Field(default_factory=list, repr=False)
    api_base: str = DEFAULT_API_BASE

    # Credential pool
    token_validation_window: float = 120.0
    probe_timeout: float = 5.0

    # Acquisition
    download_path: str = "./downloads"
    ffmpeg_path: str = "ffmpeg"
    verify_output: bool = True

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8080

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("auth_tokens")
    @classmethod
    def strip_tokens(cls, v: list[str]) -> list[str]:
        """Drops blank entries and surrounding whitespace from the token pool."""
        return [token.strip() for token in v if token and token.strip()]

    @field_validator("api_base")
    @classmethod
    def normalize_api_base(cls, v: str) -> str:
        """Ensures the API base is an absolute URL ending with a slash."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError(f"API base must be an http(s) URL, but got: {v}")
        if v and not v.endswith("/"):
            v += "/"
        return v

    @field_validator("token_validation_window", "probe_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts and validation windows must be positive.")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535.")
        return v

    @model_validator(mode="after")
    def validate_required_settings(self) -> "ServerConfig":
        """Validates that every setting needed to reach the catalog is present."""
        missing = [
            name
            for name, value in (
                ("app_id", self.app_id),
                ("auth_tokens", self.auth_tokens),
                ("app_secret", self.app_secret),
                ("api_base", self.api_base),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                f"Deployment is missing required settings: {', '.join(missing)}."
            )
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that may appear in the INI file."""
        return set(cls.model_fields)
