import io
from typing import Callable, Iterable, Optional
import logging

from minio import Minio
from minio.error import S3Error
from starlette.concurrency import run_in_threadpool
from urllib3.exceptions import HTTPError as TransportError

from storefront.core.config import settings
from storefront.errors import GatewayError

logger = logging.getLogger(__name__)

def _host() -> str:
    return settings.S3_ENDPOINT.replace('http://','').replace('https://','')

def _client():
    return Minio(_host(), access_key=settings.S3_ACCESS_KEY, secret_key=settings.S3_SECRET_KEY, secure=settings.S3_SECURE)

class StorageGateway:
    """Object storage for item images: upload, delete and public URL of a path."""

    def __init__(self, bucket: Optional[str] = None, client_factory: Callable[[], Minio] = _client):
        self.bucket = bucket or settings.S3_BUCKET
        self._client_factory = client_factory

    def _ensure_bucket(self, c: Minio):
        if not c.bucket_exists(self.bucket):
            c.make_bucket(self.bucket)

    def _exists(self, c: Minio, path: str) -> bool:
        try:
            c.stat_object(self.bucket, path)
        except S3Error as exc:
            if exc.code in ('NoSuchKey', 'NoSuchObject'):
                return False
            raise
        return True

    async def _run(self, op: str, fn):
        try:
            return await run_in_threadpool(fn)
        except S3Error as exc:
            logger.error("storage %s failed: %s", op, exc)
            raise GatewayError(exc.message or str(exc), code=exc.code) from exc
        except TransportError as exc:
            logger.error("storage %s unreachable: %s", op, exc)
            raise GatewayError(f"Storage unavailable: {exc}") from exc

    async def upload(self, path: str, data: bytes, *, content_type: Optional[str] = None,
                     cache_control: Optional[str] = None, upsert: bool = False) -> str:
        def _put():
            c = self._client_factory()
            self._ensure_bucket(c)
            if not upsert and self._exists(c, path):
                raise GatewayError('The resource already exists', code='Duplicate')
            metadata = {'Cache-Control': cache_control} if cache_control else None
            c.put_object(self.bucket, path, io.BytesIO(data), length=len(data),
                         content_type=content_type or 'application/octet-stream', metadata=metadata)
            return path
        return await self._run('upload', _put)

    async def remove(self, paths: Iterable[str]) -> None:
        paths = list(paths)
        def _remove():
            c = self._client_factory()
            for p in paths:
                c.remove_object(self.bucket, p)
        await self._run('remove', _remove)

    def public_url(self, path: str) -> str:
        base = settings.S3_PUBLIC_URL.rstrip('/')
        if not base:
            scheme = 'https' if settings.S3_SECURE else 'http'
            base = f"{scheme}://{_host()}"
        return f"{base}/{self.bucket}/{path}"
