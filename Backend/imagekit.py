import hashlib
import hmac
import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from errors import ProviderError
from models import ProviderTag, UploadResult

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"
FILES_API_URL = "https://api.imagekit.io/v1/files"

# Signed upload requests stay valid for 40 minutes
SIGNATURE_TTL_SECONDS = 2400


@dataclass(frozen=True)
class ImageKitAccount:
    tag: ProviderTag
    public_key: str
    private_key: str
    folder: str
    prefix: str

    @property
    def has_placeholder_keys(self) -> bool:
        return self.public_key.startswith("your_") or self.private_key.startswith("your_")


def sign(token: str, expire: int, private_key: str) -> str:
    return hmac.new(
        private_key.encode(),
        f"{token}{expire}".encode(),
        hashlib.sha1
    ).hexdigest()


def auth_params(account: ImageKitAccount, now: Optional[float] = None, token: Optional[str] = None) -> Dict[str, str]:
    """Client-side upload authentication: token, expiry timestamp, signature and public key."""
    if not account.private_key:
        raise ProviderError(account.tag.value, "ImageKit private key is not configured")
    token = token or secrets.token_hex(16)
    expire = int(now if now is not None else time.time()) + SIGNATURE_TTL_SECONDS
    return {
        "token": token,
        "expire": str(expire),
        "signature": sign(token, expire, account.private_key),
        "publicKey": account.public_key,
    }


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("message") or "Upload failed"
    if error:
        return str(error)
    if response.is_error:
        return payload.get("message")
    return None


class ImageKitClient:
    """Uploads to and deletes from a single ImageKit account."""

    def __init__(self, account: ImageKitAccount, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.account = account
        self._transport = transport

    @property
    def tag(self) -> ProviderTag:
        return self.account.tag

    def _client(self, **kwargs) -> httpx.AsyncClient:
        # No deadline: large uploads run until the provider answers
        return httpx.AsyncClient(transport=self._transport, timeout=None, **kwargs)

    def _raise_for_error(self, response: httpx.Response, action: str) -> None:
        message = _error_message(response)
        if response.is_error:
            logger.error(f"ImageKit {self.tag.value} {action} response error: {response.status_code} {response.text}")
            raise ProviderError(
                self.tag.value,
                message or f"ImageKit {action} failed: {response.status_code} {response.reason_phrase}",
                response.status_code,
            )
        if message:
            logger.error(f"ImageKit {self.tag.value} {action} error: {message}")
            raise ProviderError(self.tag.value, message, response.status_code)

    async def upload(self, content: bytes, filename: str) -> UploadResult:
        timestamp = int(time.time() * 1000)
        remote_name = f"{self.account.prefix}_{timestamp}_{sanitize_filename(filename)}"
        data = {
            "fileName": remote_name,
            "folder": self.account.folder,
            "useUniqueFileName": "true",
            **auth_params(self.account),
        }
        files = {"file": (remote_name, content, "application/pdf")}

        try:
            async with self._client() as client:
                response = await client.post(UPLOAD_URL, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(f"ImageKit {self.tag.value} upload request failed: {e}")
            raise ProviderError(self.tag.value, f"Storage provider unreachable: {e}") from e
        self._raise_for_error(response, "upload")

        try:
            result = response.json()
            file_id, url = result["fileId"], result["url"]
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"ImageKit {self.tag.value} upload returned an unreadable reply: {response.text[:200]}")
            raise ProviderError(
                self.tag.value, "Storage provider returned an invalid upload response", response.status_code
            ) from e
        logger.info(f"PDF uploaded to ImageKit {self.tag.value}: {url}")
        return UploadResult(
            file_id=file_id,
            url=url,
            size=result.get("size", len(content)),
            name=result.get("name", remote_name),
            file_path=result.get("filePath", ""),
            provider=self.tag,
        )

    async def delete(self, file_id: str) -> None:
        try:
            async with self._client(auth=(self.account.private_key, "")) as client:
                response = await client.delete(f"{FILES_API_URL}/{file_id}")
        except httpx.HTTPError as e:
            logger.error(f"ImageKit {self.tag.value} delete request failed: {e}")
            raise ProviderError(self.tag.value, f"Storage provider unreachable: {e}") from e
        self._raise_for_error(response, "delete")
        logger.info(f"Deleted file {file_id} from ImageKit {self.tag.value}")
