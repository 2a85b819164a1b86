from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
	# App
	APP_NAME: str = "Photo Gallery API"
	APP_VERSION: str = "1.0.0"
	API_PREFIX: str = "/api"
	DEBUG: bool = False
	ENVIRONMENT: str = "development" # development, staging, production
	LOG_LEVEL: str = "INFO"

	# Server
	PORT: int = 5000

	# Storage
	STORAGE_TYPE: str = "local" # local, s3, gcs
	UPLOAD_DIR: str = "uploads/photos"
	PUBLIC_URL_PREFIX: str = "/uploads/photos"
	MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
	MAX_BATCH_SIZE: int = 10
	ALLOWED_FORMATS: List[str] = ["jpg", "jpeg", "png", "gif", "webp"]

	# S3 Storage
	S3_ENDPOINT_URL: Optional[str] = None
	AWS_ACCESS_KEY_ID: Optional[str] = None
	AWS_SECRET_ACCESS_KEY: Optional[str] = None
	S3_BUCKET_NAME: str = "photo-gallery"
	S3_REGION: str = "us-east-1"
	S3_PREFIX: str = "photos"

	# Google Cloud Storage
	GOOGLE_CLOUD_PROJECT_ID: Optional[str] = None
	GOOGLE_CLOUD_KEY_FILE: Optional[str] = None
	GCS_BUCKET_NAME: str = "photo-gallery"
	GCS_PREFIX: str = "photos"

	# Locations
	DEFAULT_CLUSTER_DISTANCE_KM: float = 5.0
	DEFAULT_NEARBY_RADIUS_KM: float = 10.0

	# CORS
	CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]
	CORS_ALLOW_CREDENTIALS: bool = True

	# Monitoring
	EXPOSE_METRICS: bool = True

	model_config = SettingsConfigDict(
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=True
	)

	@property
	def is_development(self) -> bool:
		return self.ENVIRONMENT == "development" and self.DEBUG


@lru_cache()
def get_settings() -> Settings:
	return Settings()


settings = get_settings()
