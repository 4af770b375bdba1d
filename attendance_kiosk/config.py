"""
Configuration module for the Attendance Kiosk.

Loads configuration from environment variables with sensible defaults.
All settings are immutable after initialization.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for the Attendance Kiosk.

    Database:
        supabase_url: Base URL of the hosted Supabase project
        supabase_key: Anon/service key sent as apikey and bearer token
        students_table: Table holding student rows and embeddings
        attendance_table: Table holding attendance rows
        request_timeout: HTTP timeout for database calls (seconds)

    Camera Settings:
        camera_source: Camera source - integer index for a local webcam,
            or an RTSP/HTTP stream URL. Empty disables the kiosk camera
            (photos then come from the browser only).
        frame_width / frame_height: Requested capture resolution

    Service Identity:
        kiosk_id: Logical identifier for this kiosk (for logging/status)
        http_port: Port for Flask HTTP server

    Face Quality:
        min_face_height_pixels: Minimum face height in pixels
        min_blur_variance: Minimum Laplacian variance
        quality_threshold: Minimum composite quality score (0-100) for enrollment

    Preprocessing:
        enable_preprocessing: Enhance enrollment photos before detection
        clahe_clip_limit: CLAHE contrast limiting
        denoise_strength: Denoising strength (0-10)

    Recognition:
        det_size: Detection size for InsightFace (width, height)
        detection_threshold: Minimum detector score to accept a face
        match_threshold: Similarity a stored face must exceed to match
        max_matches: Candidates returned by a scan
        candidate_limit: Rows fetched from the database per scan
        high_confidence: Similarity above which a match is "High Confidence"

    Vector Search:
        use_vector_search: Try the database-side find_similar_faces RPC first
        vector_dimensions: Query vector length expected by the RPC
        vector_max_results: Rows requested from the RPC

    Capture:
        capture_mode: 'manual' or 'auto'
        capture_interval_seconds: Time between auto captures
        countdown_seconds: Countdown shown before an auto capture
        result_hold_seconds: How long a result stays on screen

    System:
        embeddings_store: Path to the local embeddings file
        default_course_code / default_course_title / default_level:
            Course session active at startup (optional)
        debug_mode: Enable debug logging
    """

    # Database
    supabase_url: str
    supabase_key: str
    students_table: str
    attendance_table: str
    request_timeout: float

    # Camera
    camera_source: str
    frame_width: int
    frame_height: int

    # Service
    kiosk_id: str
    http_port: int

    # Quality
    min_face_height_pixels: int
    min_blur_variance: float
    quality_threshold: int

    # Preprocessing
    enable_preprocessing: bool
    clahe_clip_limit: float
    denoise_strength: int

    # Recognition
    det_size: Tuple[int, int]
    detection_threshold: float
    match_threshold: float
    max_matches: int
    candidate_limit: int
    high_confidence: float

    # Vector search
    use_vector_search: bool
    vector_dimensions: int
    vector_max_results: int

    # Capture
    capture_mode: str
    capture_interval_seconds: float
    countdown_seconds: float
    result_hold_seconds: float

    # System
    embeddings_store: str
    default_course_code: Optional[str]
    default_course_title: Optional[str]
    default_level: Optional[int]
    debug_mode: bool


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Config: Immutable configuration object

    Raises:
        ValueError: If CAPTURE_MODE is not 'manual' or 'auto'
    """
    capture_mode = os.getenv('CAPTURE_MODE', 'manual').lower()
    if capture_mode not in ('manual', 'auto'):
        raise ValueError(f"CAPTURE_MODE must be 'manual' or 'auto', got {capture_mode!r}")

    default_level = os.getenv('COURSE_LEVEL')

    return Config(
        # Database
        supabase_url=os.getenv('SUPABASE_URL', 'http://localhost:54321').rstrip('/'),
        supabase_key=os.getenv('SUPABASE_ANON_KEY', ''),
        students_table=os.getenv('STUDENTS_TABLE', 'students'),
        attendance_table=os.getenv('ATTENDANCE_TABLE', 'student_attendance'),
        request_timeout=float(os.getenv('REQUEST_TIMEOUT', '10')),

        # Camera
        camera_source=os.getenv('CAMERA_SOURCE', '0'),
        frame_width=int(os.getenv('FRAME_WIDTH', '640')),
        frame_height=int(os.getenv('FRAME_HEIGHT', '480')),

        # Service
        kiosk_id=os.getenv('KIOSK_ID', 'kiosk'),
        http_port=int(os.getenv('HTTP_PORT', '5001')),

        # Quality
        min_face_height_pixels=int(os.getenv('MIN_FACE_HEIGHT', '40')),
        min_blur_variance=float(os.getenv('MIN_BLUR_VAR', '50.0')),
        quality_threshold=int(os.getenv('QUALITY_THRESHOLD', '50')),

        # Preprocessing
        enable_preprocessing=_env_flag('ENABLE_PREPROCESSING', 'false'),
        clahe_clip_limit=float(os.getenv('CLAHE_CLIP', '2.0')),
        denoise_strength=int(os.getenv('DENOISE_STRENGTH', '5')),

        # Recognition
        det_size=(640, 640),
        detection_threshold=float(os.getenv('DETECTION_THRESHOLD', '0.5')),
        match_threshold=float(os.getenv('MATCH_THRESHOLD', '0.65')),
        max_matches=int(os.getenv('MAX_MATCHES', '5')),
        candidate_limit=int(os.getenv('CANDIDATE_LIMIT', '50')),
        high_confidence=float(os.getenv('HIGH_CONFIDENCE', '0.8')),

        # Vector search
        use_vector_search=_env_flag('USE_VECTOR_SEARCH', 'false'),
        vector_dimensions=int(os.getenv('VECTOR_DIMENSIONS', '128')),
        vector_max_results=int(os.getenv('VECTOR_MAX_RESULTS', '3')),

        # Capture
        capture_mode=capture_mode,
        capture_interval_seconds=float(os.getenv('CAPTURE_INTERVAL', '5.0')),
        countdown_seconds=float(os.getenv('COUNTDOWN_SECONDS', '1.0')),
        result_hold_seconds=float(os.getenv('RESULT_HOLD_SECONDS', '3.0')),

        # System
        embeddings_store=os.getenv('EMBEDDINGS_STORE', 'face_embeddings.pkl'),
        default_course_code=os.getenv('COURSE_CODE') or None,
        default_course_title=os.getenv('COURSE_TITLE') or None,
        default_level=int(default_level) if default_level else None,
        debug_mode=_env_flag('DEBUG', 'false'),
    )
