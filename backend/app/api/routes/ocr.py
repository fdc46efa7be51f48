from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_current_user, get_receipt_scanner
from app.models.user import User
from app.schemas.ai import GatewayStatusOut, ReceiptImageRequest
from app.schemas.common import Envelope
from app.services.receipt_scanner import ReceiptScanner, strip_data_url


router = APIRouter(prefix="/ocr", tags=["ocr"])


@router.post("/analyze-base64", response_model=Envelope[dict])
def analyze_receipt(
    payload: ReceiptImageRequest,
    current_user: User = Depends(get_current_user),
    scanner: ReceiptScanner = Depends(get_receipt_scanner),
) -> Envelope[dict]:
    if not scanner.client.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Receipt scanning is not configured",
        )
    image = strip_data_url(payload.image)
    if not image:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image data")

    result = scanner.analyze(image, payload.mime_type)
    if result.get("success") is False:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.get("error", "Receipt analysis failed"))
    return Envelope(data=result)


@router.get("/status", response_model=Envelope[GatewayStatusOut])
def get_status(
    current_user: User = Depends(get_current_user),
    scanner: ReceiptScanner = Depends(get_receipt_scanner),
) -> Envelope[GatewayStatusOut]:
    return Envelope(data=GatewayStatusOut(**scanner.status()))
