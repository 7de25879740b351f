"""MinIO object storage wrapper for uploaded import files."""
import io
import logging

from minio import Minio
from minio.error import S3Error

from masters.core.config import settings

logger = logging.getLogger(__name__)

# ─── Client singleton ───

def _build_client() -> Minio:
    return Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


_client: Minio | None = None


def get_client() -> Minio:
    global _client
    if _client is None:
        _client = _build_client()
    return _client


# ─── Bucket bootstrap ───

def ensure_bucket(bucket: str = settings.IMPORT_BUCKET_NAME) -> None:
    """Create the import bucket if missing. Called on startup."""
    client = get_client()
    try:
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
            logger.info("Created MinIO bucket: %s", bucket)
        else:
            logger.debug("MinIO bucket already exists: %s", bucket)
    except S3Error as exc:
        logger.error("Failed to ensure MinIO bucket %s: %s", bucket, exc)
        raise


# ─── Import files ───

def import_object_key(run_id: str, filename: str) -> str:
    return f"imports/{run_id}/{filename}"


def upload_file(object_name: str, data: bytes, content_type: str, bucket: str = settings.IMPORT_BUCKET_NAME) -> str:
    """Store an uploaded import file. Returns the object key."""
    get_client().put_object(
        bucket_name=bucket,
        object_name=object_name,
        data=io.BytesIO(data),
        length=len(data),
        content_type=content_type,
    )
    logger.info("Uploaded %s/%s (%d bytes)", bucket, object_name, len(data))
    return object_name


def download_file(object_name: str, bucket: str = settings.IMPORT_BUCKET_NAME) -> bytes:
    """Download an object and return its raw bytes."""
    response = get_client().get_object(bucket_name=bucket, object_name=object_name)
    try:
        return response.read()
    finally:
        response.close()
        response.release_conn()


def delete_object(object_name: str, bucket: str = settings.IMPORT_BUCKET_NAME) -> None:
    """Delete an import file. A missing object is not an error."""
    try:
        get_client().remove_object(bucket_name=bucket, object_name=object_name)
    except S3Error as exc:
        if exc.code != "NoSuchKey":
            raise
    logger.info("Deleted %s/%s", bucket, object_name)
