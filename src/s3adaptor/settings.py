from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    import boto3
    from botocore.client import BaseClient

MIN_PART_SIZE = 5 * 1024 * 1024


class S3Settings(BaseSettings):
    """Settings for S3 clients.

    You can adapt the following settings in your environment variables (or using and .env file):
    - S3_ENDPOINT_URL: The URL of the S3 server. Leave unset for AWS
    - S3_REGION: The region of the S3 server
    - S3_AWS_ACCESS_KEY_ID / S3_AWS_SECRET_ACCESS_KEY: Static credentials
    - S3_AWS_SESSION_TOKEN: Session token for temporary credentials
    - S3_PROFILE_NAME: Named profile, used when no static keys are given
    - S3_CREDENTIALS_FILE_PATH: Custom shared credentials file for the profile
    - S3_ERROR_NAMESPACE: Namespace attached to every raised error

    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="S3_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # The endpoint URL of the S3 server (MinIO, Garage, ...). None means AWS
    endpoint_url: str | None = None

    # The region of the S3 server
    region: str = "us-east-1"

    # Static credentials; both or neither
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None

    # Named profile credentials
    profile_name: str | None = None
    credentials_file_path: str | None = None

    # "path", "virtual" or "auto"
    addressing_style: Literal["path", "virtual", "auto"] | None = None

    # Block in create_bucket until the bucket is visible
    wait_for_bucket: bool = True

    # Default chunk size for downloaded object reads
    read_chunk_size: int = Field(default=4096, gt=0)

    # Part size used by streamed multipart uploads
    multipart_part_size: int = Field(default=8 * 1024 * 1024, ge=MIN_PART_SIZE)

    # Namespace attached to raised errors
    error_namespace: str = "s3adaptor"

    @model_validator(mode="after")
    def _check_static_credentials(self) -> S3Settings:
        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            raise ValueError("aws_access_key_id and aws_secret_access_key must be set together")
        return self

    def create_session(self) -> boto3.Session:
        """Create a boto3 session from the configured credentials."""

        import boto3

        if self.aws_access_key_id:
            return boto3.Session(
                aws_access_key_id=self.aws_access_key_id,
                aws_secret_access_key=self.aws_secret_access_key,
                aws_session_token=self.aws_session_token or None,
                region_name=self.region,
            )

        if self.profile_name and self.credentials_file_path:
            import botocore.session

            core = botocore.session.Session()
            core.set_config_variable("credentials_file", self.credentials_file_path)
            core.set_config_variable("profile", self.profile_name)
            return boto3.Session(botocore_session=core, region_name=self.region)

        return boto3.Session(profile_name=self.profile_name, region_name=self.region)

    def create_client(self) -> BaseClient:
        """Create a S3 client from the settings."""

        from botocore.config import Config

        config = Config(s3={"addressing_style": self.addressing_style}) if self.addressing_style else None
        return self.create_session().client(
            "s3",
            endpoint_url=self.endpoint_url,
            region_name=self.region,
            config=config,
        )
