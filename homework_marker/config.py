"""
Configuration settings for the homework marking backend
"""
from pydantic_settings import BaseSettings
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings using pydantic-settings"""
    
    # Server settings
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    # Error frames carry exception detail only when DEBUG is on (set in .env)
    DEBUG: bool = False
    
    # CORS settings
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    
    # Project paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    EXPORTS_DIR: Path = PROJECT_ROOT / "exports"
    CORPUS_PATH: Path = DATA_DIR / "corpus" / "exam_corpus.json"
    
    # Question detection
    ACCEPTANCE_THRESHOLD: float = 0.50
    SUB_QUESTION_ACCEPTANCE_THRESHOLD: float = 0.40
    RESCUE_THRESHOLD: float = 0.30
    SUB_PART_FALLBACK_SCORE: float = 0.50
    SUB_PART_FALLBACK_MIN_SIMILARITY: float = 0.20
    
    # Pipeline execution
    CONCURRENCY_LIMIT: int = 4
    COLLABORATOR_TIMEOUT: float = 120.0
    MAX_PAGES: int = 20
    PDF_RESOLUTION: int = 150
    RENDER_REFERENCE_HEIGHT: int = 2400
    
    # AI Model settings
    LLM_PROVIDER: str = "ollama"
    DEFAULT_MODEL: str = "llama3.2-vision:latest"
    AVAILABLE_MODELS: List[str] = [
        "llama3.2-vision:latest",
        "llava:latest",
        "qwen2.5vl:latest",
    ]
    TEMPERATURE: float = 0.1
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_NUM_CTX: int = 8192
    
    # Groq Cloud settings
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    GROQ_FALLBACK_TO_OLLAMA: bool = True
    
    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()

# Ensure directories exist
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
settings.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
