"""
Service configuration loaded from environment (.env supported)
"""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Runtime settings and recognition policy values"""
    database_url: str = 'sqlite:///./attendance.db'

    # Redis (shared cooldown store for multi-kiosk deployments)
    redis_host: str = 'redis'
    redis_port: int = 6379
    cooldown_backend: str = 'memory'   # 'memory' or 'redis'

    # Face matching policy
    confidence_threshold: float = 0.5
    distance_ceiling: float = 0.8
    margin_threshold: float = 0.05
    descriptor_dimension: int = 128

    # Attendance policy
    cooldown_window_seconds: float = 30.0
    earth_radius_meters: float = 6_371_000.0
    default_class_radius_meters: float = 30.0
    min_enrollment_faces: int = 3

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults"""
        return cls(
            database_url=os.getenv('DATABASE_URL', cls.database_url),
            redis_host=os.getenv('REDIS_HOST', cls.redis_host),
            redis_port=int(os.getenv('REDIS_PORT', cls.redis_port)),
            cooldown_backend=os.getenv('COOLDOWN_BACKEND', cls.cooldown_backend).lower(),
            confidence_threshold=float(os.getenv('FACE_CONFIDENCE_THRESHOLD', cls.confidence_threshold)),
            distance_ceiling=float(os.getenv('FACE_DISTANCE_CEILING', cls.distance_ceiling)),
            margin_threshold=float(os.getenv('FACE_MARGIN_THRESHOLD', cls.margin_threshold)),
            descriptor_dimension=int(os.getenv('FACE_DESCRIPTOR_DIMENSION', cls.descriptor_dimension)),
            cooldown_window_seconds=float(os.getenv('ATTENDANCE_COOLDOWN_SECONDS', cls.cooldown_window_seconds)),
            earth_radius_meters=float(os.getenv('EARTH_RADIUS_METERS', cls.earth_radius_meters)),
            default_class_radius_meters=float(
                os.getenv('DEFAULT_CLASS_RADIUS_METERS', cls.default_class_radius_meters)
            ),
            min_enrollment_faces=int(os.getenv('MIN_ENROLLMENT_FACES', cls.min_enrollment_faces)),
        )


# Global instance
settings = Settings.from_env()
