from typing import List, Optional
from pydantic import BaseModel

class StepConfig(BaseModel):
    id: str
    title: str
    description: str

PRINT_HOME_STEPS: List[StepConfig] = [
    StepConfig(id="upload", title="画像アップロード", description="最大20枚"),
    StepConfig(id="customer-info", title="お客様情報", description="配送先入力"),
    StepConfig(id="confirmation", title="最終確認", description="内容確認"),
    StepConfig(id="payment", title="決済", description="お支払い"),
]

HOME_PATH = "/"
STEP_PATHS = ["/step1", "/step2", "/step3", "/step4"]

def get_step_index_from_path(path: str) -> int:
    """
    Index of the step served at `path`; unknown paths map to the first step.
    """
    try:
        return STEP_PATHS.index(path)
    except ValueError:
        return 0

def get_path_from_step_index(step_index: int) -> str:
    if 0 <= step_index < len(STEP_PATHS):
        return STEP_PATHS[step_index]
    return HOME_PATH

def get_next_step_path(current_path: str) -> Optional[str]:
    next_index = get_step_index_from_path(current_path) + 1
    if next_index >= len(PRINT_HOME_STEPS):
        return None
    return get_path_from_step_index(next_index)

def get_previous_step_path(current_path: str) -> str:
    previous_index = get_step_index_from_path(current_path) - 1
    if previous_index < 0:
        return HOME_PATH
    return get_path_from_step_index(previous_index)
