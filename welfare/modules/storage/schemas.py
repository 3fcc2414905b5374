from pydantic import BaseModel
from typing import Optional
from enum import Enum


class DocumentCategory(str, Enum):
    KYC = "kyc_documents"
    PROOF_OF_PAYMENT = "proof_of_payment"


class StoredDocument(BaseModel):
    path: str
    url: str
    content_type: Optional[str] = None
    size: int
