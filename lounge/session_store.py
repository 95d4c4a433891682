import json
from typing import Optional
import redis


class SessionStore:
    """
    Key-value cache for the signed-in session: an access token and the
    cached user record (a JSON blob written at login time).
    """

    def get_token(self) -> Optional[str]:
        raise NotImplementedError

    def set_token(self, token: str):
        raise NotImplementedError

    def get_cached_user(self) -> Optional[dict]:
        raise NotImplementedError

    def set_cached_user(self, user: dict):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self, token: str = None, user: dict = None):
        self._token = token
        self._user = user

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str):
        self._token = token

    def get_cached_user(self) -> Optional[dict]:
        return self._user

    def set_cached_user(self, user: dict):
        self._user = user

    def clear(self):
        self._token = None
        self._user = None


class RedisSessionStore(SessionStore):
    """Session cache kept in Redis under session:<id>:token / session:<id>:user."""

    TTL_SECONDS = 7 * 24 * 60 * 60

    def __init__(self, redis_client: redis.Redis, session_id: str):
        self.redis = redis_client
        self.session_id = session_id

    @property
    def token_key(self) -> str:
        return f"session:{self.session_id}:token"

    @property
    def user_key(self) -> str:
        return f"session:{self.session_id}:user"

    def get_token(self) -> Optional[str]:
        token = self.redis.get(self.token_key)
        if isinstance(token, bytes):
            token = token.decode()
        return token or None

    def set_token(self, token: str):
        self.redis.set(self.token_key, token, ex=self.TTL_SECONDS)

    def get_cached_user(self) -> Optional[dict]:
        raw = self.redis.get(self.user_key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return None

    def set_cached_user(self, user: dict):
        self.redis.set(self.user_key, json.dumps(user), ex=self.TTL_SECONDS)

    def clear(self):
        self.redis.delete(self.token_key, self.user_key)
