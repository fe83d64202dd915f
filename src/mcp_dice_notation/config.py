from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DICE_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Master switch; when off every command answers "[Dice roller not loaded]".
    enabled: bool = True
    # Registers the RollTheDice-style function tool on the MCP server.
    function_tool_enabled: bool = True
    default_actor: str = "User"

    # Bounds handed to the engine on every call.
    max_formula_length: int = 100
    explode_limit: int = 100
    max_dice: int = 1000


settings = Settings()
