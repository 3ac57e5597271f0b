# centralized configuration loader
# runs load_dotenv() so a local .env can point the gateway at other backends

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# Backends
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434").rstrip("/")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")
DEFAULT_MODEL_ID = os.getenv("DEFAULT_MODEL_ID", "local/instruct")

# Timeouts (seconds)
REQUEST_TIMEOUT_S = float(os.getenv("REQUEST_TIMEOUT_S", "30"))
CONNECT_TIMEOUT_S = float(os.getenv("CONNECT_TIMEOUT_S", "10"))
ONDEVICE_TIMEOUT_S = float(os.getenv("ONDEVICE_TIMEOUT_S", "120"))

# Generation defaults
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "1000"))
STREAM_CHUNK_CHARS = max(1, int(os.getenv("STREAM_CHUNK_CHARS", "10")))

# Collaborators
EXTERNAL_APIS_FILE = os.getenv("EXTERNAL_APIS_FILE", "")
GOOGLE_SEARCH_API_KEY = os.getenv("GOOGLE_SEARCH_API_KEY", "")
GOOGLE_SEARCH_ENGINE_ID = os.getenv("GOOGLE_SEARCH_ENGINE_ID", "")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY") or os.getenv("HF_TOKEN", "")
IMAGE_MODEL_HF = os.getenv("IMAGE_MODEL_HF", "stabilityai/stable-diffusion-xl-base-1.0")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
