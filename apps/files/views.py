import functools
import json
import logging
from urllib.parse import quote

from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .exceptions import FileServiceError, InternalError, MalformedDescriptor
from .forms import FileUploadForm, ImageUploadForm
from .keyring import get_keyring
from .services.file_service import FileService

logger = logging.getLogger(__name__)

INLINE_TYPE_PREFIXES = ('image/', 'video/', 'audio/')
CACHE_AGE = 315360000  # 10 years


def json_errors(view):
    """
    Converts service errors into a JSON error body with a matching status.
    Anything that is not a FileServiceError is logged and reported as a 500.
    """
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except FileServiceError as e:
            logger.warning(f"{request.method} {request.path} failed: {type(e).__name__}: {e.message}")
            return JsonResponse({'error': e.message}, status=e.status_code)
        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.path}: {e}")
            error = InternalError()
            return JsonResponse({'error': error.message}, status=error.status_code)
    return wrapper


def form_error_message(form):
    return "; ".join(
        f"{field}: {' '.join(errors)}" for field, errors in form.errors.items()
    )


def content_disposition(content_type, filename):
    """
    Builds the Content-Disposition header: media the browser can show is
    served inline, everything else as an attachment.
    """
    disposition = 'inline' if content_type.startswith(INLINE_TYPE_PREFIXES) else 'attachment'
    # Same escaping as JavaScript's encodeURIComponent
    encoded = quote(filename, safe="!~*'()")
    return f"{disposition}; filename=\"{encoded}\"; filename*=UTF-8''{encoded}"


def get_file_service():
    return FileService(get_keyring())


@csrf_exempt
@require_POST
@json_errors
def generate(request):
    """
    Issues a token for content that is already stored upstream.
    """
    try:
        payload = json.loads(request.body)
    except ValueError as e:
        raise MalformedDescriptor("Request body must be valid JSON") from e

    token = get_file_service().issue_token(payload)
    return JsonResponse(token.to_dict())


@csrf_exempt
@require_POST
@json_errors
def upload_file(request):
    """
    Handles the file upload process: stores the file upstream (in segments
    when it is too large for a single upload) and returns its token.
    """
    form = FileUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        logger.error(f"Form validation failed: {form.errors.as_json()}")
        raise MalformedDescriptor(form_error_message(form))

    uploaded_file = form.cleaned_data['file']
    logger.info(f"Starting upload for file: {uploaded_file.name} ({uploaded_file.size} bytes)")

    token = get_file_service().store(
        file_stream=uploaded_file,
        filename=uploaded_file.name,
        content_type=uploaded_file.content_type,
        size=uploaded_file.size,
        expired_at=form.cleaned_data['expiredAt'],
    )
    logger.info(f"File uploaded successfully: {uploaded_file.name}")
    return JsonResponse(token.to_dict())


@csrf_exempt
@require_POST
@json_errors
def scramble_image(request):
    """
    Returns the scrambled version of an uploaded PNG or JPEG image.
    """
    form = ImageUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        raise MalformedDescriptor(form_error_message(form))

    uploaded_file = form.cleaned_data['file']
    scrambled = get_file_service().scramble(uploaded_file.read(), uploaded_file.content_type)
    return HttpResponse(scrambled, content_type=uploaded_file.content_type)


@require_GET
@json_errors
def download_file(request, digit, encrypted):
    """
    Resolves a token and returns the content it stands for.
    """
    retrieved = get_file_service().retrieve(digit, encrypted)

    response = HttpResponse(retrieved.content, content_type=retrieved.content_type)
    response['Content-Length'] = str(len(retrieved.content))
    response['Content-Disposition'] = content_disposition(retrieved.content_type, retrieved.filename)
    if retrieved.expires:
        response['Cache-Control'] = 'private, no-store'
    else:
        response['Cache-Control'] = f'public, max-age={CACHE_AGE}, immutable'
    logger.info(f"Served {retrieved.filename} ({len(retrieved.content)} bytes)")
    return response
