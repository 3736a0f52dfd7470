from .queue_service import (
    GenerationQueueService,
    TaskResult,
    generate_content,
    generate_content_batch
)

__all__ = [
    'GenerationQueueService',
    'TaskResult',
    'generate_content',
    'generate_content_batch'
]
