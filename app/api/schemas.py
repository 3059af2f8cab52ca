from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from app.services.customer_data import AddressData, CustomerData
from app.services.image_validation import ImageValidationError
from app.services.session_images import SessionImage
from app.utils.steps import StepConfig

class StagedFileOut(BaseModel):
    file_id: str
    name: str
    size: int
    formatted_size: str
    content_type: str
    preview_url: str

class StagingResponse(BaseModel):
    files: List[StagedFileOut]
    count: int
    max_images: int
    max_file_size: str
    accept: str
    errors: List[ImageValidationError] = Field(default_factory=list)
    error_summary: str = ""
    dropped_files: List[str] = Field(default_factory=list)

class SessionImagesResponse(BaseModel):
    token: Optional[str] = None
    state: str  # "empty", "loading", "loaded"
    images: List[SessionImage]
    is_pending: bool = False
    error: Optional[str] = None

class OperationResponse(BaseModel):
    success: bool
    error: Optional[str] = None

class Step1Response(BaseModel):
    staging: StagingResponse
    session: SessionImagesResponse

class SubmitResponse(BaseModel):
    success: bool
    token: Optional[str] = None
    image_count: Optional[int] = None
    error: Optional[str] = None
    redirect: Optional[str] = None

class Step2Response(BaseModel):
    token: str
    images: List[SessionImage]
    customer: CustomerData
    prefectures: List[str]
    back: str

class CartCreateRequest(BaseModel):
    token: str
    customer: CustomerData
    use_same_address: bool = True
    delivery: Optional[AddressData] = None

class CartCreateResponse(BaseModel):
    success: bool
    cart_token: Optional[str] = None
    error: Optional[str] = None
    field_errors: Dict[str, str] = Field(default_factory=dict)
    delivery_errors: Dict[str, str] = Field(default_factory=dict)
    redirect: Optional[str] = None

class CartSummaryResponse(BaseModel):
    success: bool
    cart_token: str
    cart: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    back: str

class CheckoutRequest(BaseModel):
    cart_token: str

class CheckoutResponse(BaseModel):
    success: bool
    checkout_url: Optional[str] = None
    session_id: Optional[str] = None
    error: Optional[str] = None

class PaymentCompleteRequest(BaseModel):
    session_id: str
    cart_token: str

class PaymentCompleteResponse(BaseModel):
    success: bool
    order: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    redirect: Optional[str] = None

class ThanksResponse(BaseModel):
    order_number: str

class StepsResponse(BaseModel):
    steps: List[StepConfig]
    current_index: int
    next_path: Optional[str] = None
    previous_path: str
