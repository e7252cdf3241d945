# schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Amount = Union[str, int, float]


# -------- C2B (mobile-money callbacks) --------
class C2BValidationRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    TransactionType: Optional[str] = None
    TransID: Optional[str] = None
    TransAmount: Optional[Amount] = None
    BusinessShortCode: Optional[str] = None
    BillRefNumber: Optional[str] = None
    MSISDN: Optional[str] = None


class C2BConfirmationRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    TransactionType: Optional[str] = None
    TransID: Optional[str] = None
    TransTime: Optional[str] = None
    TransAmount: Optional[Amount] = None
    BusinessShortCode: Optional[str] = None
    # destination number for the top-up
    BillRefNumber: Optional[str] = None
    InvoiceNumber: Optional[str] = None
    OrgAccountBalance: Optional[str] = None
    ThirdPartyTransID: Optional[str] = None
    MSISDN: Optional[str] = None
    FirstName: Optional[str] = None
    MiddleName: Optional[str] = None
    LastName: Optional[str] = None


class C2BResponse(BaseModel):
    ResultCode: int = Field(ge=0, le=1)
    ResultDesc: str


# -------- Read models --------
class SaleView(BaseModel):
    id: str
    topup_number: Optional[str] = None
    amount_cents: int
    carrier: Optional[str] = None
    pool_id: Optional[str] = None
    provider: Optional[str] = None
    provider_ref: Optional[str] = None
    status: str
    dispatch_result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ErrorRecordView(BaseModel):
    type: str
    sub_type: Optional[str] = None
    severity: str
    message: str
    sale_id: Optional[str] = None
    created_at: Optional[datetime] = None


class TransactionView(BaseModel):
    transaction_id: str
    amount_cents: int
    currency: str
    payer_msisdn: Optional[str] = None
    payer_name: Optional[str] = None
    topup_number: Optional[str] = None
    trans_time: Optional[str] = None
    status: str
    fulfillment_state: Optional[str] = None
    linked_sale_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sale: Optional[SaleView] = None
    errors: List[ErrorRecordView] = []


class FloatLogView(BaseModel):
    pool_id: str
    kind: str
    delta_cents: int
    balance_after_cents: int
    transaction_id: Optional[str] = None
    sale_id: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class FloatPoolView(BaseModel):
    pool_id: str
    balance_cents: int
    carriers: List[str] = []


class FloatListResponse(BaseModel):
    pools: List[FloatPoolView]


class FloatDetailResponse(BaseModel):
    pool: FloatPoolView
    recent_logs: List[FloatLogView]
