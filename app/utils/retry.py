# app/utils/retry.py
import requests
import redis
from tenacity import retry, retry_if_exception, retry_if_exception_type, stop_after_attempt, wait_exponential


def _is_transient_http_error(exc: BaseException) -> bool:
    # 4xx (np. 404 brak produktu) nie ma sensu powtarzac
    if isinstance(exc, requests.HTTPError):
        return exc.response is None or exc.response.status_code >= 500
    return isinstance(exc, requests.RequestException)


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception(_is_transient_http_error),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )
