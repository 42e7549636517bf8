#!/usr/bin/env python3
"""
InkFlow Stencil API Server
JSON endpoints for the live single-page front-end, a one-shot download
endpoint, and a server-rendered dashboard.  All of them run the same
stencil transform.
"""

import os
import logging
from io import BytesIO
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file, render_template_string
from flask_cors import CORS

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

# Import services and models
from models.stencil_settings import StencilSettings
from models.errors import StencilError
from services.image_service import ImageService
from services.stencil_service import StencilService
from services.session_service import SessionService
from pipeline.generate_stencil import DOWNLOAD_NAME, render_stencil_png

app = Flask(__name__)
CORS(app, resources={r"/api/*": {"origins": "*"}})  # Enable CORS for frontend communication

# Configuration
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,bmp,webp").split(","))
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "20"))

app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE_MB * 1024 * 1024

# Initialize services
image_service = ImageService()
stencil_service = StencilService(image_service=image_service)
sessions = SessionService(stencil_service)

logger = logging.getLogger(__name__)


DASHBOARD_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>InkFlow - Tattoo Stencil Generator</title>
  <style>
    body { font-family: sans-serif; background: #0f172a; color: #e2e8f0; margin: 2rem; }
    form { display: grid; grid-template-columns: max-content 12rem; gap: .5rem 1rem; }
    .previews { display: flex; gap: 2rem; margin-top: 2rem; }
    .previews img { max-width: 45vw; max-height: 70vh; background: #fff; }
    .error { color: #f87171; }
  </style>
</head>
<body>
  <h1>InkFlow</h1>
  <p>Upload a reference photo and generate a printable line-work stencil.</p>
  {% if error %}<p class="error">{{ error }}</p>{% endif %}
  <form method="post" enctype="multipart/form-data">
    <input type="hidden" name="session_id" value="{{ session_id or '' }}">
    <label for="image">Photo</label>
    <input id="image" type="file" name="image" accept="image/*">
    <label for="low_threshold">Low threshold</label>
    <input id="low_threshold" type="number" name="low_threshold" min="0" max="255" value="{{ settings.low_threshold }}">
    <label for="high_threshold">High threshold</label>
    <input id="high_threshold" type="number" name="high_threshold" min="0" max="255" value="{{ settings.high_threshold }}">
    <label for="blur_radius">Blur radius</label>
    <input id="blur_radius" type="number" name="blur_radius" min="1" max="31" value="{{ settings.blur_radius }}">
    <label for="inverted">Black lines on white</label>
    <input id="inverted" type="checkbox" name="inverted" value="true" {% if settings.inverted %}checked{% endif %}>
    <span></span>
    <button type="submit">Generate stencil</button>
  </form>
  {% if original_uri %}
  <div class="previews">
    <figure><figcaption>Original</figcaption><img src="{{ original_uri }}" alt="Original"></figure>
    {% if stencil_uri %}
    <figure>
      <figcaption>Stencil result - <a href="{{ stencil_uri }}" download="{{ download_name }}">download</a></figcaption>
      <img src="{{ stencil_uri }}" alt="Stencil">
    </figure>
    {% endif %}
  </div>
  {% endif %}
</body>
</html>
"""


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def read_upload(field: str = 'image') -> bytes:
    """Return the uploaded file bytes, or raise ValueError with a user-facing message."""
    if field not in request.files:
        raise ValueError('No image provided')
    file = request.files[field]
    if file.filename == '':
        raise ValueError('No file selected')
    if not allowed_file(file.filename):
        raise ValueError(f"Unsupported file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")
    return file.read()


def json_body() -> dict:
    """The request JSON object, or an empty dict for anything else (arrays, scalars, bad JSON)."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def session_payload(session) -> dict:
    payload = {
        'session_id': session.session_id,
        'generation': session.generation,
        'stencil_generation': session.stencil_generation,
        'processing': session.is_processing,
        'settings': session.settings.as_dict(),
        'image': None,
        'error': str(session.last_error) if session.last_error else None,
    }
    if session.stencil is not None:
        payload['image'] = image_service.to_data_uri(session.stencil)
    return payload


# ─── Single-page front-end API ────────────────────────────────────

@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'InkFlow Stencil API is running',
        'active_sessions': len(sessions)
    })


@app.route('/api/defaults', methods=['GET'])
def defaults():
    """Canonical default stencil settings."""
    return jsonify(stencil_service.defaults.as_dict())


@app.route('/api/load-image', methods=['POST'])
def load_image():
    """Decode an upload into a (new or existing) session."""
    try:
        data = read_upload()
    except ValueError as e:
        return jsonify({'success': False, 'message': str(e)}), 400

    try:
        image = image_service.decode(data)
    except StencilError as e:
        logger.error(f"Upload rejected: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400

    session = sessions.get_or_create(request.form.get('session_id'))
    session.load(image)

    return jsonify({
        'success': True,
        'session_id': session.session_id,
        'width': image.width,
        'height': image.height,
        'settings': session.settings.as_dict(),
    })


@app.route('/api/render', methods=['POST'])
def render():
    """Render the session image synchronously with the given settings."""
    body = json_body()
    session = sessions.get(body.get('session_id'))
    if session is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    try:
        settings = StencilSettings.from_mapping(body, session.settings)
        stencil = session.render(settings)
    except StencilError as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Render error: {e}")
        return jsonify({'success': False, 'message': 'Processing failed'}), 500

    payload = session_payload(session)
    payload['success'] = True
    payload['superseded'] = stencil is None
    return jsonify(payload)


@app.route('/api/update-settings', methods=['POST'])
def update_settings():
    """Merge a settings change and schedule a debounced render."""
    body = json_body()
    session = sessions.get(body.get('session_id'))
    if session is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    changes = {k: v for k, v in body.items() if k != 'session_id'}
    try:
        settings = session.update(**changes)
        generation = session.schedule()
    except StencilError as e:
        return jsonify({'success': False, 'message': str(e)}), 400

    return jsonify({
        'success': True,
        'session_id': session.session_id,
        'generation': generation,
        'settings': settings.as_dict(),
    })


@app.route('/api/result', methods=['GET'])
def result():
    """Latest committed stencil for a session (poll after /api/update-settings)."""
    session = sessions.get(request.args.get('session_id'))
    if session is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400
    payload = session_payload(session)
    payload['success'] = True
    return jsonify(payload)


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session and free memory."""
    body = json_body()
    if sessions.drop(body.get('session_id')):
        return jsonify({'success': True, 'message': 'Session cleared'})
    return jsonify({'success': False, 'message': 'Session not found'})


# ─── Stateless download ───────────────────────────────────────────

@app.route('/api/stencil', methods=['POST'])
def stencil_download():
    """Upload + settings in, stencil PNG out."""
    try:
        data = read_upload()
    except ValueError as e:
        return jsonify({'success': False, 'message': str(e)}), 400

    try:
        settings = StencilSettings.from_mapping(request.form, stencil_service.defaults)
        png = render_stencil_png(data, settings,
                                 image_service=image_service,
                                 stencil_service=stencil_service)
    except StencilError as e:
        logger.error(f"Stencil request rejected: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Stencil processing error: {e}")
        return jsonify({'success': False, 'message': 'Processing failed'}), 500

    return send_file(
        BytesIO(png),
        mimetype='image/png',
        as_attachment=True,
        download_name=DOWNLOAD_NAME
    )


# ─── Server-rendered dashboard ────────────────────────────────────

@app.route('/', methods=['GET', 'POST'])
def dashboard():
    """Form-post front-end: every submit renders once with the posted settings."""
    context = {
        'settings': stencil_service.defaults,
        'session_id': None,
        'original_uri': None,
        'stencil_uri': None,
        'error': None,
        'download_name': DOWNLOAD_NAME,
    }
    if request.method == 'GET':
        return render_template_string(DASHBOARD_TEMPLATE, **context)

    session = sessions.get(request.form.get('session_id'))
    status = 200
    try:
        settings = StencilSettings.from_mapping(request.form, stencil_service.defaults, checkbox=True)
        context['settings'] = settings

        upload = request.files.get('image')
        if upload is not None and upload.filename:
            data = read_upload()
            session = session or sessions.get_or_create()
            session.load(image_service.decode(data))
        if session is None or session.source is None:
            raise ValueError('Choose a photo to start')
        session.render(settings)
    except (StencilError, ValueError) as e:
        context['error'] = f"Processing failed: {e}"
        status = 400
    except Exception as e:
        logger.error(f"Dashboard error: {e}")
        context['error'] = 'Processing failed'
        status = 500

    if session is not None and session.source is not None:
        context['session_id'] = session.session_id
        context['original_uri'] = image_service.source_data_uri(session.source)
        if session.stencil is not None:
            context['stencil_uri'] = image_service.to_data_uri(session.stencil)

    return render_template_string(DASHBOARD_TEMPLATE, **context), status


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_UPLOAD_SIZE_MB}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    port = int(os.getenv("API_SERVER_PORT", "5000"))
    logger.info(f"Starting InkFlow Stencil API on port {port} (max upload {MAX_UPLOAD_SIZE_MB}MB)")
    app.run(host='0.0.0.0', port=port, debug=os.getenv("API_DEBUG", "false").lower() == "true")


if __name__ == '__main__':
    main()
