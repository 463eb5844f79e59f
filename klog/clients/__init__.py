from klog.clients.protocols import CacheClientProtocol, StreamBrokerProtocol
from klog.clients.redis_client import RedisClient

__all__ = ["CacheClientProtocol", "RedisClient", "StreamBrokerProtocol"]
