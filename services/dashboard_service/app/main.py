# services/dashboard_service/app/main.py

import gradio as gr
import fastapi
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional, List, Tuple
from core.config import settings
from core.errors import CloudStoreError, NotAuthenticated, UploadFailed, SomeFilesRejected
from core.models import FileBlob, FilterState, TypeFilter, FileRecord, ServiceResponse
from core.storage import StorageClient
from core.supabase_client import create_supabase_client, FILES_BUCKET
from core.utils import format_file_size, format_date
from .catalog import CatalogViewModel, ALLOWED_EXTENSIONS, ANY_TYPE
from .session import DashboardSession
from .stats import load_storage_usage
from .storage_check import ensure_storage_bucket, check_storage_capabilities

# Setup logger
logger = logging.getLogger("CloudStore_Core").getChild("Dashboard").getChild("UI")

FILE_TABLE_HEADERS = ["Name", "Type", "Size", "Modified", "ID"]

TYPE_FILTER_CHOICES = [
    ("All Files", TypeFilter.ALL.value), ("Images", TypeFilter.IMAGE.value),
    ("Documents", TypeFilter.DOCUMENT.value), ("Videos", TypeFilter.VIDEO.value),
    ("Audio", TypeFilter.AUDIO.value), ("Archives", TypeFilter.ARCHIVE.value),
    ("Code", TypeFilter.CODE.value),
]

UPLOAD_TYPE_CHOICES = [
    ("🖼️ Images", "image"), ("📄 Documents", "document"), ("🎥 Videos", "video"),
    ("🎵 Audio", "audio"), ("📦 Archives", "archive"), ("💻 Code Files", "code"),
    ("📁 Any File Type", ANY_TYPE),
]

# --- View Helpers ---

def catalog_rows(records: List[FileRecord]) -> List[List[str]]:
    return [
        [r.display_name, r.type_label, format_file_size(r.size_bytes), format_date(r.updated_at), r.id]
        for r in records
    ]

def catalog_summary(catalog: CatalogViewModel) -> str:
    total, shown = len(catalog.snapshot), len(catalog.visible)
    if shown == 0:
        if total == 0:
            return "**No files in cloud storage yet.** Upload your first file to get started!"
        return "**No files match your search.** Try adjusting your search terms or filters."
    return f"Showing {shown} of {total} files from cloud storage"

def file_choices(records: List[FileRecord]) -> List[Tuple[str, str]]:
    return [(f"{r.display_name} ({format_file_size(r.size_bytes)})", r.id) for r in records]

def _filter_state(search_term: Optional[str], type_filter: Optional[str]) -> FilterState:
    return FilterState(search_term=search_term or "", type_filter=TypeFilter(type_filter or TypeFilter.ALL.value))

def _require_session(session: Optional[DashboardSession]) -> DashboardSession:
    if session is None or not session.is_authenticated:
        raise NotAuthenticated("Please sign in first.")
    return session

def _catalog_view(session: Optional[DashboardSession], message: str = ""):
    """(status, table rows, file selector update, summary) for the Files tab."""
    if session is None:
        return message, [], gr.update(choices=[], value=None), ""
    catalog = session.catalog
    return message, catalog_rows(catalog.visible), gr.update(choices=file_choices(catalog.visible), value=None), catalog_summary(catalog)

# --- Account Handlers ---

async def sign_in_ui(email: str, password: str, session: Optional[DashboardSession]):
    """Signs the user in and loads their files."""
    if not email or not password:
        return ("Please enter your email and password.", session) + _catalog_view(session)[1:]
    if session is None:
        try:
            session = await DashboardSession.open()
        except (ValueError, RuntimeError) as e:
            logger.error(f"Cannot open dashboard session: {e}")
            return ("Configuration error: cannot reach cloud storage. Check service logs.", None) + _catalog_view(None)[1:]
    try:
        user = await session.sign_in(email, password)
    except CloudStoreError as e:
        return (f"Sign in failed: {e.message}", session) + _catalog_view(session)[1:]
    message = f"Signed in as {user.email or user.id}."
    try:
        await session.catalog.load(user)
    except CloudStoreError as e:
        message += f" {e.message}"
    return (message, session) + _catalog_view(session)[1:]

async def sign_up_ui(email: str, password: str, confirm_password: str, session: Optional[DashboardSession]):
    if not email:
        return "Please enter your email address.", session
    if session is None:
        try:
            session = await DashboardSession.open()
        except (ValueError, RuntimeError) as e:
            logger.error(f"Cannot open dashboard session: {e}")
            return "Configuration error: cannot reach cloud storage. Check service logs.", None
    try:
        return await session.sign_up(email, password, confirm_password), session
    except CloudStoreError as e:
        return e.message, session

async def sign_out_ui(session: Optional[DashboardSession]):
    if session is not None:
        await session.sign_out()
    return ("Signed out.", session) + _catalog_view(None)[1:]

# --- File Handlers ---

async def refresh_files_ui(session: Optional[DashboardSession], search_term: str, type_filter: str):
    """Reloads the file list from storage and applies the current filter."""
    try:
        session = _require_session(session)
        session.catalog.apply_filter(_filter_state(search_term, type_filter))
        await session.catalog.load(session.user)
    except CloudStoreError as e:
        return _catalog_view(session, e.message)
    return _catalog_view(session)

def filter_files_ui(session: Optional[DashboardSession], search_term: str, type_filter: str):
    if session is None:
        return _catalog_view(None)
    session.catalog.apply_filter(_filter_state(search_term, type_filter))
    return _catalog_view(session)

async def download_file_ui(session: Optional[DashboardSession], file_id: Optional[str]):
    """Fetches the selected file and hands Gradio a local copy to save."""
    try:
        session = _require_session(session)
        record = session.catalog.find(file_id) if file_id else None
        if record is None:
            return "Please select a file to download.", None
        downloaded = await session.catalog.download(session.user, record)
    except CloudStoreError as e:
        return e.message, None
    local_path = session.download_path(downloaded.filename)
    with open(local_path, 'wb') as f:
        f.write(downloaded.content)
    logger.info(f"Prepared download of '{record.name}' at {local_path}")
    return f"Downloaded {downloaded.filename} ({format_file_size(len(downloaded.content))}).", local_path

async def delete_file_ui(session: Optional[DashboardSession], file_id: Optional[str], confirmed: bool):
    """Deletes the selected file once the user has ticked the confirmation box."""
    try:
        session = _require_session(session)
        record = session.catalog.find(file_id) if file_id else None
        if record is None:
            return _catalog_view(session, "Please select a file to delete.") + (gr.update(value=False),)
        if not confirmed:
            return _catalog_view(session, f'Please confirm you want to delete "{record.display_name}". This action cannot be undone.') + (gr.update(),)
        if session.catalog.is_deleting(record.id):
            return _catalog_view(session, f"{record.display_name} is already being deleted.") + (gr.update(),)
        await session.catalog.remove(session.user, record)
    except CloudStoreError as e:
        return _catalog_view(session, e.message) + (gr.update(value=False),)
    return _catalog_view(session, f"Deleted {record.display_name}.") + (gr.update(value=False),)

async def upload_files_ui(session: Optional[DashboardSession], file_paths: Optional[List[str]], expected_type: str,
                          progress=gr.Progress()):
    """Uploads the selected files and refreshes the catalog."""
    if not file_paths:
        return ("Please select one or more files to upload.", gr.update()) + _catalog_view(session)[1:]
    blobs = [FileBlob(name=os.path.basename(p), path=p) for p in file_paths]
    progress(0, desc="Uploading to Cloud...")
    try:
        session = _require_session(session)
        result = await session.catalog.upload(
            session.user, blobs, expected_type or ANY_TYPE,
            progress=lambda pct: progress(pct / 100, desc=f"{pct:.0f}% complete - Uploading to secure cloud..."),
        )
    except SomeFilesRejected as e:
        details = "\n".join(f"- {r.reason}" for r in e.rejected)
        return (f"{e.message}\n{details}", gr.update()) + _catalog_view(session)[1:]
    except UploadFailed as e:
        logger.error(f"Upload batch failed after {e.uploaded_count} successful upload(s): {e.message}")
        return (e.message, gr.update()) + _catalog_view(session)[1:]
    except CloudStoreError as e:
        return (e.message, gr.update()) + _catalog_view(session)[1:]
    progress(1, desc="Done.")
    message = result.message
    if result.rejected:
        message += "\n" + "\n".join(f"- {r.reason}" for r in result.rejected)
    return (message, gr.update(value=None)) + _catalog_view(session)[1:]

def upload_hint_ui(expected_type: str) -> str:
    if not expected_type or expected_type == ANY_TYPE:
        return f"Upload to secure cloud storage (Max {settings.MAX_UPLOAD_SIZE_BYTES // (1024 * 1024)}MB per file)"
    return "Accepted: " + ", ".join(ALLOWED_EXTENSIONS.get(expected_type, ()))

# --- Usage & Setup Handlers ---

async def storage_stats_ui(session: Optional[DashboardSession]) -> str:
    """Renders the usage overview as markdown."""
    try:
        session = _require_session(session)
        usage = await load_storage_usage(session.store, session.user)
    except CloudStoreError as e:
        return f"**Error loading storage stats:** {e.message}"
    lines = [
        "### Storage Overview",
        f"- **Total Files:** {usage.total_files}",
        f"- **Storage Used:** {format_file_size(usage.total_size)}",
        f"- **Recent Uploads (7 days):** {usage.recent_uploads}",
        f"- **Usage:** {format_file_size(usage.total_size)} of {format_file_size(usage.quota_bytes)} ({usage.usage_percentage:.1f}%)",
        "",
        "### File Types",
    ]
    if not usage.by_category:
        lines.append("No files uploaded yet.")
    for category, data in usage.categories_by_size():
        lines.append(f"- **{category.plural}:** {data.count} file(s), {format_file_size(data.total_size)}")
    return "\n".join(lines)

async def storage_check_ui(session: Optional[DashboardSession]) -> str:
    if session is None:
        return "**Error:** User not authenticated"
    user = await session.refresh_user()
    status = await check_storage_capabilities(session.store, user)
    badge = lambda ok: "✅ Working" if ok else "❌ Failed"
    lines = [
        "### Storage System Status",
        f"- **Bucket Exists:** {badge(status.bucket_exists)}",
        f"- **Can List Files:** {badge(status.can_list)}",
        f"- **Can Upload Files:** {badge(status.can_upload)}",
        f"- **Can Delete Files:** {badge(status.can_delete)}",
    ]
    if status.error:
        lines.append(f"\n**Error:** {status.error}")
    if status.fully_working:
        lines.append("\n🎉 **Perfect!** Your cloud storage is fully configured and ready to use!")
    elif not status.can_upload or not status.can_list:
        lines.append("\nRow Level Security (RLS) policies need to be configured. The app will still work with basic functionality.")
    return "\n".join(lines)


# --- Build Gradio Interface ---
with gr.Blocks(theme=gr.themes.Soft(), title="CloudStore") as demo:
    gr.Markdown("# CloudStore")
    gr.Markdown("Secure cloud storage: upload, browse, download and manage your files.")
    session_state = gr.State(None) # Holds the DashboardSession of this browser tab
    with gr.Tabs():
        with gr.TabItem("Account"):
            with gr.Row():
                email_input = gr.Textbox(label="Email Address", placeholder="Enter your email")
                password_input = gr.Textbox(label="Password", type="password", placeholder="Enter your password")
                confirm_password_input = gr.Textbox(label="Confirm Password (sign up only)", type="password")
            with gr.Row():
                sign_in_button = gr.Button("Sign In", variant="primary")
                sign_up_button = gr.Button("Create Account")
                sign_out_button = gr.Button("Sign Out")
            account_status = gr.Textbox(label="Status", interactive=False)
        with gr.TabItem("Files"):
            with gr.Row():
                search_input = gr.Textbox(label="Search files...", scale=3)
                type_filter_input = gr.Dropdown(label="Filter by type", choices=TYPE_FILTER_CHOICES, value=TypeFilter.ALL.value, scale=1)
                refresh_button = gr.Button("🔄 Refresh", scale=1)
            files_status = gr.Markdown()
            files_summary = gr.Markdown()
            files_table = gr.Dataframe(headers=FILE_TABLE_HEADERS, interactive=False, wrap=True)
            with gr.Row():
                file_selector = gr.Dropdown(label="Selected File", choices=[], interactive=True)
                confirm_delete = gr.Checkbox(label="I understand deleting cannot be undone", value=False)
            with gr.Row():
                download_button = gr.Button("⬇️ Download")
                delete_button = gr.Button("🗑️ Delete", variant="stop")
            download_output = gr.File(label="Downloaded File", interactive=False)
        with gr.TabItem("Upload"):
            upload_type_input = gr.Dropdown(label="File Type Filter", choices=UPLOAD_TYPE_CHOICES, value=ANY_TYPE)
            upload_hint = gr.Markdown(upload_hint_ui(ANY_TYPE))
            upload_input = gr.File(label="Drop files here or click to browse", file_count="multiple", type="filepath")
            upload_button = gr.Button("⬆️ Upload File(s) to Cloud", variant="primary")
            upload_status = gr.Textbox(label="Upload Status", interactive=False, lines=3)
        with gr.TabItem("Usage"):
            stats_button = gr.Button("📊 Refresh Usage")
            stats_display = gr.Markdown("Sign in to see your storage usage.")
        with gr.TabItem("Storage Setup"):
            check_button = gr.Button("Test Storage")
            check_display = gr.Markdown("Run a test to check your storage configuration.")

    files_outputs = [files_status, files_table, file_selector, files_summary]

    # --- Connect UI elements to functions ---
    sign_in_button.click(sign_in_ui, inputs=[email_input, password_input, session_state], outputs=[account_status, session_state, files_table, file_selector, files_summary])
    sign_up_button.click(sign_up_ui, inputs=[email_input, password_input, confirm_password_input, session_state], outputs=[account_status, session_state])
    sign_out_button.click(sign_out_ui, inputs=[session_state], outputs=[account_status, session_state, files_table, file_selector, files_summary])
    refresh_button.click(refresh_files_ui, inputs=[session_state, search_input, type_filter_input], outputs=files_outputs)
    search_input.change(filter_files_ui, inputs=[session_state, search_input, type_filter_input], outputs=files_outputs)
    type_filter_input.change(filter_files_ui, inputs=[session_state, search_input, type_filter_input], outputs=files_outputs)
    download_button.click(download_file_ui, inputs=[session_state, file_selector], outputs=[files_status, download_output])
    delete_button.click(delete_file_ui, inputs=[session_state, file_selector, confirm_delete], outputs=files_outputs + [confirm_delete])
    upload_type_input.change(upload_hint_ui, inputs=[upload_type_input], outputs=[upload_hint])
    upload_button.click(upload_files_ui, inputs=[session_state, upload_input, upload_type_input], outputs=[upload_status, upload_input, files_table, file_selector, files_summary])
    stats_button.click(storage_stats_ui, inputs=[session_state], outputs=[stats_display])
    check_button.click(storage_check_ui, inputs=[session_state], outputs=[check_display])


# --- FastAPI App with Bucket Setup on Startup ---
@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    """Makes sure the files bucket exists when a service key is configured."""
    app.state.bucket_ready = False
    if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_KEY:
        try:
            service_client = await create_supabase_client(use_service_key=True)
            app.state.bucket_ready = await ensure_storage_bucket(StorageClient(service_client, FILES_BUCKET))
        except (ValueError, RuntimeError) as e:
            logger.error(f"Could not create service client for bucket setup: {e}")
        except CloudStoreError as e:
            logger.error(f"Storage bucket setup failed: {e.message}")
    else:
        logger.warning("Skipping storage bucket setup: service key not configured.")
    yield
    logger.info("Dashboard service shutting down.")

app = fastapi.FastAPI(title="CloudStore Dashboard", lifespan=lifespan)

@app.get("/", response_model=ServiceResponse)
async def root():
    return ServiceResponse(status="success", message="CloudStore dashboard is running. Access the Gradio interface at /ui")

@app.get("/health", response_model=ServiceResponse)
async def health_check(request: fastapi.Request):
    configured = bool(settings.SUPABASE_URL and settings.SUPABASE_KEY)
    bucket_ready = getattr(request.app.state, 'bucket_ready', False)
    return ServiceResponse(
        status="success",
        message=f"Dashboard is running (Supabase: {'configured' if configured else 'NOT configured'})",
        data={"supabase_configured": configured, "bucket": FILES_BUCKET, "bucket_ready": bucket_ready},
    )

app = gr.mount_gradio_app(app, demo, path="/ui")
