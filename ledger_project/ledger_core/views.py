import json
import logging
from functools import wraps

from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from .conf import get_import_setting
from .exceptions import (DuplicateFileError, ImportRejected,
                         MobileVerificationError, SettlementRejected,
                         UploadOrderViolation)
from .models import ImportLog, StagingImport
from .services import ledger, mobile, settlement, staging, tally, xml_upload
from .tasks import sync_staging_import

logger = logging.getLogger(__name__)


# ---------- access helpers ----------
def staff_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated or not user.is_staff:
            return JsonResponse({"message": "Admin access required"}, status=403)
        return view(request, *args, **kwargs)
    return wrapper


def customer_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if getattr(request, "customer", None) is None:
            return JsonResponse({"message": "Unauthorized"}, status=401)
        return view(request, *args, **kwargs)
    return wrapper


def _uploaded_file(request):
    upload = request.FILES.get("file")
    if upload is None:
        raise ImportRejected("No file uploaded")
    return upload.read(), upload.name


def _payload(request):
    """JSON body or form fields, whichever the client sent."""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("Malformed JSON body")
        if not isinstance(data, dict):
            raise ValidationError("Expected a JSON object")
        return data
    return request.POST.dict()


def _limit(request, default, ceiling):
    try:
        return max(1, min(int(request.GET.get("limit", default)), ceiling))
    except ValueError:
        return default


# ---------- auto-detect (staged) pipeline ----------
@require_POST
@staff_required
def upload_view(request):
    try:
        content, name = _uploaded_file(request)
        batch = staging.stage_upload(content, name)
    except DuplicateFileError as e:
        return JsonResponse({"message": "This file has already been imported", **e.as_dict()}, status=409)
    except ImportRejected as e:
        return JsonResponse({"message": e.message, "details": e.details}, status=e.status)
    return JsonResponse({"importId": batch.pk, "type": batch.import_type, "rows": len(batch.raw_rows)})


@require_GET
@staff_required
def import_status_view(request, import_id):
    batch = get_object_or_404(StagingImport, pk=import_id)
    return JsonResponse(staging.staging_as_dict(batch))


@require_POST
@staff_required
def sync_view(request, import_id):
    batch = get_object_or_404(StagingImport, pk=import_id)

    try:
        if get_import_setting("ASYNC_SYNC") and not batch.is_settled:
            # a batch already queued or running answers 409 instead of queueing twice
            if staging.queue_staging_import(batch.pk):
                sync_staging_import.delay(batch.pk)
                return JsonResponse({"importId": batch.pk, "status": "queued"}, status=202)
        result = staging.process_staging_import(batch.pk)
    except ImportRejected as e:
        return JsonResponse({"message": e.message}, status=e.status)
    return JsonResponse({"success": True, **result})


@require_GET
@staff_required
def import_history_view(request):
    limit = _limit(request, 20, 100)
    batches = StagingImport.objects.defer("raw_rows")[:limit]
    return JsonResponse({"imports": [
        {
            "id": b.pk,
            "fileName": b.file_name,
            "type": b.import_type,
            "status": b.status,
            "processedCount": b.processed_count,
            "duplicatesCount": b.duplicates_count,
            "createdAt": b.created_at,
            "processedAt": b.processed_at,
        }
        for b in batches
    ]})


# ---------- Tally Excel ----------
def _tally_import(request, report):
    try:
        content, name = _uploaded_file(request)
        result = tally.import_tally_report(report, content, name)
    except DuplicateFileError as e:
        previous = e.as_dict()
        return JsonResponse(
            {
                "message": "This file has already been imported",
                "importId": previous["importId"],
                "importedAt": previous["importedAt"],
            },
            status=409,
        )
    except ImportRejected as e:
        body = {"message": e.message}
        if e.details:
            body["errors"] = e.details
        return JsonResponse(body, status=e.status)
    return JsonResponse(result)


@require_POST
@staff_required
def tally_party_view(request):
    return _tally_import(request, "party")


@require_POST
@staff_required
def tally_sales_view(request):
    return _tally_import(request, "sales")


@require_GET
@staff_required
def tally_logs_view(request):
    limit = _limit(request, 50, 500)
    import_type = request.GET.get("type") or None
    return JsonResponse({"logs": tally.import_history(limit=limit, import_type=import_type)})


# ---------- ordered XML pipeline ----------
@require_GET
@staff_required
def xml_status_view(request):
    return JsonResponse(xml_upload.upload_status())


@require_POST
@staff_required
def xml_upload_view(request, stage):
    try:
        # order is checked before anything about the file
        xml_upload.ensure_stage_allowed(stage)
        content, name = _uploaded_file(request)
        if not name.lower().endswith(".xml"):
            raise ImportRejected("Only .xml files are allowed")
        result = xml_upload.run_stage(stage, content, name)
    except UploadOrderViolation as e:
        return JsonResponse({"error": "Upload order violation", "details": str(e)}, status=400)
    except DuplicateFileError as e:
        digest = e.previous.file_hash
        return JsonResponse(
            {
                "error": "This file has already been uploaded",
                "details": f"File hash: {digest[:12]}...",
                **e.as_dict(),
            },
            status=400,
        )
    except ImportRejected as e:
        return JsonResponse({"error": e.message}, status=e.status)
    return JsonResponse(result)


@require_GET
@staff_required
def xml_errors_view(request, log_id):
    log = get_object_or_404(ImportLog, pk=log_id)
    response = HttpResponse(content_type="text/csv")
    response["Content-Disposition"] = f'attachment; filename="upload-{log.pk}-errors.csv"'
    xml_upload.write_error_csv(log, response)
    return response


# ---------- customer dashboard ----------
@require_GET
@customer_required
def dashboard_view(request):
    params = request.GET
    try:
        data = ledger.dashboard(
            request.customer,
            period=params.get("period"),
            start_date=params.get("start_date"),
            end_date=params.get("end_date"),
            page=params.get("page"),
            page_size=params.get("pageSize"),
        )
    except ValidationError as e:
        return JsonResponse({"message": " ".join(e.messages)}, status=400)
    return JsonResponse(data)


# ---------- settlement ----------
@require_POST
@staff_required
def settle_view(request):
    try:
        data = _payload(request)
        payment, remaining = settlement.settle_invoice(
            invoice_id=data.get("invoiceId"),
            amount=data.get("amount"),
            payment_date=data.get("paymentDate"),
            payment_mode=data.get("paymentMode"),
            reference_no=data.get("referenceNo") or None,
            user=request.user,
        )
    except ValidationError as e:
        return JsonResponse({"message": " ".join(e.messages)}, status=400)
    except SettlementRejected as e:
        return JsonResponse({"message": e.message, **e.figures}, status=e.status)
    return JsonResponse({
        "success": True,
        "message": "Payment recorded successfully",
        "paymentId": payment.pk,
        "receiptNo": payment.receipt_number,
        "remainingDue": remaining,
    })


# ---------- mobile verification ----------
def _mobile_error(e):
    body = {"message": e.message, **e.extra}
    if e.code:
        body["code"] = e.code
    return JsonResponse(body, status=e.status)


@require_GET
@customer_required
def mobile_status_view(request):
    return JsonResponse(mobile.verification_status(request.customer))


@require_POST
@customer_required
def mobile_add_view(request):
    try:
        data = _payload(request)
        link = mobile.request_mobile_link(request.customer, data.get("mobile"))
    except ValidationError as e:
        return JsonResponse({"message": " ".join(e.messages)}, status=400)
    except MobileVerificationError as e:
        return _mobile_error(e)
    return JsonResponse({
        "success": True,
        "message": "Mobile number request submitted successfully. Your request is pending admin verification.",
        "requestId": link.pk,
        "mobile": link.mobile,
        "status": link.status,
    })


@require_GET
@staff_required
def mobile_pending_view(request):
    return JsonResponse({"requests": mobile.pending_requests()})


@require_POST
@staff_required
def mobile_verify_view(request):
    try:
        data = _payload(request)
        link = mobile.approve_request(data.get("requestId"), staff_user=request.user)
    except ValidationError as e:
        return JsonResponse({"message": " ".join(e.messages)}, status=400)
    except MobileVerificationError as e:
        return _mobile_error(e)
    return JsonResponse({
        "success": True,
        "message": f"Mobile number {link.mobile} has been verified and linked.",
        "customerId": link.customer_id,
        "mobile": link.mobile,
    })


@require_POST
@staff_required
def mobile_reject_view(request):
    try:
        data = _payload(request)
        link = mobile.reject_request(data.get("requestId"), staff_user=request.user)
    except ValidationError as e:
        return JsonResponse({"message": " ".join(e.messages)}, status=400)
    except MobileVerificationError as e:
        return _mobile_error(e)
    return JsonResponse({
        "success": True,
        "message": "Mobile verification request has been rejected",
        "requestId": link.pk,
    })
