"""
Type-safe configuration schemas using Pydantic.
"""

from typing import Optional, Dict, Any, Literal, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from pydantic_core import PydanticUndefined

from . import defaults


# ============================================================================
# Simulation Configuration
# ============================================================================

class SimulationConfig(BaseModel):
    """Wave field configuration."""
    grid_size: int = Field(default=defaults.DEFAULT_GRID_SIZE, gt=2, description='Cells per side')
    viscosity: float = Field(default=defaults.DEFAULT_VISCOSITY, gt=0.0, lt=1.0, description='Damping coefficient')
    bounds: float = Field(default=defaults.DEFAULT_BOUNDS, gt=0.0, description='Physical side length')
    dt: float = Field(default=defaults.DEFAULT_DT, gt=0.0, description='Frame time step (seconds)')
    boundary: Literal['clamp', 'wrap'] = Field(default=defaults.DEFAULT_BOUNDARY, description='Edge policy')
    pointer_radius: float = Field(default=defaults.POINTER_RADIUS, gt=0.0)
    pointer_depth: float = Field(default=defaults.POINTER_DEPTH, ge=0.0)
    impulse_radius: float = Field(default=defaults.IMPULSE_RADIUS, gt=0.0)
    impulse_depth: float = Field(default=defaults.IMPULSE_DEPTH, ge=0.0)
    normal_scale: Optional[float] = Field(default=None, description='Normal y component (None = 2 * cell spacing)')

    @field_validator('normal_scale')
    def validate_normal_scale(cls, v):
        if v is not None and v <= 0.0:
            raise ValueError("normal_scale must be positive")
        return v

    @property
    def cell_spacing(self) -> float:
        return self.bounds / self.grid_size


# ============================================================================
# Scheduler Configuration
# ============================================================================

class SchedulerConfig(BaseModel):
    """Event impulse scheduling configuration."""
    scale_constant: float = Field(default=defaults.SCALE_CONSTANT, ge=0.0)
    stagger: float = Field(default=defaults.IMPULSE_STAGGER, ge=0.0, description='Seconds between onsets')
    impulse_duration: float = Field(default=defaults.IMPULSE_DURATION, gt=0.0)
    capacity: int = Field(default=defaults.IMPULSE_CAPACITY, ge=1, le=defaults.IMPULSE_CAPACITY)
    drop_intensity: float = Field(default=defaults.DROP_INTENSITY, ge=0.0)
    drop_capacity: int = Field(default=defaults.DROP_CAPACITY, ge=0)


# ============================================================================
# Render Configuration
# ============================================================================

class RenderConfig(BaseModel):
    """Surface shading configuration."""
    theme: Literal['dark', 'light'] = Field(default='dark')
    light_direction: Tuple[float, float, float] = Field(default=defaults.LIGHT_DIRECTION)
    specular_power: float = Field(default=defaults.SPECULAR_POWER, gt=0.0)
    camera_position: Tuple[float, float, float] = Field(default=defaults.CAMERA_POSITION)
    camera_fov: float = Field(default=defaults.CAMERA_FOV, gt=0.0, lt=180.0)


# ============================================================================
# Server Configuration
# ============================================================================

class ServerConfig(BaseModel):
    """Server configuration."""
    host: str = Field(default='127.0.0.1', description='Server host')
    port: int = Field(default=8000, description='Server port')
    reload: bool = Field(default=False, description='Auto-reload on code changes')
    log_level: str = Field(default='INFO', description='Logging level')


# ============================================================================
# Logging Configuration
# ============================================================================

class LoggingConfig(BaseModel):
    """Logging configuration."""
    log_dir: Optional[str] = Field(default='logs', description='Log directory (None = console only)')
    level: str = Field(default='INFO', description='Log level')
    json_format: bool = Field(default=True, description='Use JSON format')
    console_output: bool = Field(default=True, description='Output to console')
    rotate_size: int = Field(default=10485760, description='Max log file size (bytes)')
    rotate_count: int = Field(default=5, description='Number of backup files')
    per_module_levels: Optional[Dict[str, str]] = Field(default=None)


# ============================================================================
# Main Configuration
# ============================================================================

class WaveCalConfig(BaseModel):
    """Main wave calendar configuration."""
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    model_config = ConfigDict(validate_assignment=True, extra='allow')

    @model_validator(mode='before')
    def env_override(cls, data: Any):
        """Allow environment variable overrides for top-level fields."""
        if not isinstance(data, dict):
            data = {} if data is None else dict(data)
        else:
            data = dict(data)

        import os

        for field_name in cls.model_fields:
            env_name = f"WAVECAL_{field_name.upper()}"
            env_value = os.getenv(env_name)
            if env_value is None:
                continue

            current_value = data.get(field_name)
            if current_value is None:
                field_info = cls.model_fields[field_name]
                if field_info.default_factory is not None:  # type: ignore[attr-defined]
                    current_value = field_info.default_factory()
                elif field_info.default is not PydanticUndefined:
                    current_value = field_info.default
            data[field_name] = cls._coerce_env_value(env_value, current_value)

        return data

    @staticmethod
    def _coerce_env_value(env_value: str, current_value: Any) -> Any:
        """Coerce environment value to the type of the current field value."""
        if isinstance(current_value, bool):
            return env_value.lower() in ('true', '1', 'yes')
        if isinstance(current_value, int):
            try:
                return int(env_value)
            except ValueError:
                return current_value
        if isinstance(current_value, float):
            try:
                return float(env_value)
            except ValueError:
                return current_value
        if isinstance(current_value, BaseModel):
            # Nested sections accept a JSON object
            import json
            try:
                return json.loads(env_value)
            except ValueError:
                return current_value
        return env_value
