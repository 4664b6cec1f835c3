import logging
from typing import AsyncIterator

from minio import Minio
from minio.error import S3Error
from starlette.concurrency import run_in_threadpool

from .config import settings
from .exceptions import StorageError

logger = logging.getLogger("secure-link")

CHUNK_SIZE = 1024 * 1024

minio_client = Minio(
    settings.MINIO_ENDPOINT,
    access_key=settings.MINIO_ACCESS_KEY,
    secret_key=settings.MINIO_SECRET_KEY,
    secure=settings.MINIO_SECURE
)

def initialize_minio_bucket():
    try:
        if not minio_client.bucket_exists(settings.MINIO_BUCKET):
            minio_client.make_bucket(settings.MINIO_BUCKET)
            logger.info("Bucket '%s' created", settings.MINIO_BUCKET)
        else:
            logger.info("Bucket '%s' already exists", settings.MINIO_BUCKET)
    except S3Error as e:
        logger.error("MinIO error: %s", e)
        raise RuntimeError(f"Failed to initialize MinIO bucket: {e}")


async def store_object(bucket: str, object_name: str, path: str, content_type: str) -> None:
    try:
        await run_in_threadpool(
            minio_client.fput_object, bucket, object_name, path, content_type=content_type
        )
    except S3Error as e:
        logger.error("MinIO upload failed bucket=%s object=%s err=%s", bucket, object_name, e)
        raise StorageError() from e


async def open_object(bucket: str, object_name: str):
    """Open a blob for streaming; the caller passes it to :func:`iter_object`."""
    try:
        return await run_in_threadpool(minio_client.get_object, bucket, object_name)
    except S3Error as e:
        logger.error("MinIO get_object failed bucket=%s object=%s err=%s", bucket, object_name, e)
        raise StorageError("File not found in storage") from e


async def iter_object(obj) -> AsyncIterator[bytes]:
    try:
        # read in chunks via threadpool to avoid blocking loop
        while True:
            chunk = await run_in_threadpool(obj.read, CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        await run_in_threadpool(obj.close)
        await run_in_threadpool(obj.release_conn)


async def remove_object(bucket: str, object_name: str) -> bool:
    try:
        await run_in_threadpool(minio_client.remove_object, bucket, object_name)
        return True
    except S3Error as e:
        logger.warning("MinIO remove_object failed bucket=%s object=%s err=%s", bucket, object_name, e)
        return False
