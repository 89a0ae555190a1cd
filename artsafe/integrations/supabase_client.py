from supabase import create_client, Client
from typing import Optional
from artsafe.config import settings
from artsafe.utils.logger import logger


class SupabaseClient:
    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_ROLE_KEY
                )
                logger.info("Supabase client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Supabase client: {e}")
                raise
        return cls._instance

    @classmethod
    def upload_file(cls, bucket: str, file_path: str, file_data: bytes, content_type: str = "application/octet-stream") -> str:
        client = cls.get_client()
        try:
            response = client.storage.from_(bucket).upload(
                file_path,
                file_data,
                file_options={"content-type": content_type, "upsert": "true"}
            )
            path = getattr(response, "path", None)
            return path or file_path
        except Exception as e:
            logger.error(f"Failed to upload {file_path} to Supabase Storage bucket {bucket}: {e}")
            raise
