"""
ORM models. Importing this package registers every table on Base.metadata.
"""
from imagegen.models.catalog import AiModel, AiProvider
from imagegen.models.credit_ledger import LedgerEntry, TransactionType
from imagegen.models.generated_image import GeneratedImage, ImageFormat
from imagegen.models.generation_request import GenerationRequest, RequestStatus
from imagegen.models.user import User

__all__ = [
    "AiModel",
    "AiProvider",
    "GeneratedImage",
    "GenerationRequest",
    "ImageFormat",
    "LedgerEntry",
    "RequestStatus",
    "TransactionType",
    "User",
]
