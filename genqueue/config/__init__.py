from genqueue.config.genqueue_config import GenQueueConfig

__all__ = ['GenQueueConfig']
