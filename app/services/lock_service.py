import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje atomowo przez lua, skrypt dziala jako jedna nieprzerywalna operacja
#nie mozna wcisnac sie miedzy GET a DEL, wiec tu jest get + porownanie + del wszystko naraz


def cart_lock_key(user_id: int, store_id: int) -> str:
    return f"cart:{user_id}:{store_id}:lock"


class LockService:
    """
    -krotki lock na koszyk (user, store) na czas jednej operacji
    -zwalnianie locka tylko przez wlasciciela tokenu
    -atomowosc przy pomocy lua
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def acquire_cart_lock(self, user_id: int, store_id: int, token: str, ttl: int) -> bool:
        key = cart_lock_key(user_id, store_id)
        logger.info(f"Acquire lock {key}")
        #SET cart:1:2:lock "<token>" NX EX 10
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True, #not eXists, jak klucz jest to nic nie rob i False
                ex=ttl, #wygasa sam, padniety proces nie blokuje koszyka na zawsze
            )
        )

    @redis_retry()
    def release_cart_lock(self, user_id: int, store_id: int, token: str) -> bool:
        key = cart_lock_key(user_id, store_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
