import json
import logging
import re
import aiofiles
from pathlib import Path
from typing import Dict, Optional, Protocol
from pydantic import BaseModel
from app.utils.file_utils import ensure_directory_exists

logger = logging.getLogger("customer_data")

CUSTOMER_DATA_KEY = "print_home_customer_data"

PREFECTURES = [
    "北海道", "青森県", "岩手県", "宮城県", "秋田県", "山形県", "福島県",
    "茨城県", "栃木県", "群馬県", "埼玉県", "千葉県", "東京都", "神奈川県",
    "新潟県", "富山県", "石川県", "福井県", "山梨県", "長野県", "岐阜県",
    "静岡県", "愛知県", "三重県", "滋賀県", "京都府", "大阪府", "兵庫県",
    "奈良県", "和歌山県", "鳥取県", "島根県", "岡山県", "広島県", "山口県",
    "徳島県", "香川県", "愛媛県", "高知県", "福岡県", "佐賀県", "長崎県",
    "熊本県", "大分県", "宮崎県", "鹿児島県", "沖縄県",
]

class AddressData(BaseModel):
    postal_code: str = ""
    prefecture: str = ""
    city: str = ""
    address_line1: str = ""
    address_line2: str = ""

class CustomerData(AddressData):
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    notes: str = ""

    def address(self) -> AddressData:
        return AddressData(
            postal_code=self.postal_code,
            prefecture=self.prefecture,
            city=self.city,
            address_line1=self.address_line1,
            address_line2=self.address_line2,
        )

class FieldValidation(BaseModel):
    is_valid: bool
    errors: Dict[str, str]

_MOBILE_PATTERN = re.compile(r"(090|080|070)[0-9]{8}", re.ASCII)
_LANDLINE_PATTERN = re.compile(r"0[0-9]{9,10}", re.ASCII)
# Simplified RFC 5322
_EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*",
    re.ASCII,
)
_POSTAL_CODE_PATTERN = re.compile(r"[0-9]{7}", re.ASCII)
_SEPARATORS = re.compile(r"[-\s]")

def validate_phone_number(phone: str) -> bool:
    """
    Japanese mobile (090/080/070 + 8 digits) or landline (10-11 digits) number.
    """
    clean = _SEPARATORS.sub("", phone)
    return bool(_MOBILE_PATTERN.fullmatch(clean) or _LANDLINE_PATTERN.fullmatch(clean))

def validate_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.fullmatch(email)) and len(email) <= 254

def validate_postal_code(postal_code: str) -> bool:
    return bool(_POSTAL_CODE_PATTERN.fullmatch(_SEPARATORS.sub("", postal_code)))

def validate_address(data: AddressData) -> FieldValidation:
    """
    Validate an address block; shared by the customer and delivery addresses.
    """
    errors: Dict[str, str] = {}

    if not data.postal_code.strip():
        errors["postal_code"] = "郵便番号は必須です"
    elif not validate_postal_code(data.postal_code):
        errors["postal_code"] = "郵便番号の形式が正しくありません（例：123-4567）"

    if not data.prefecture:
        errors["prefecture"] = "都道府県を選択してください"
    elif data.prefecture not in PREFECTURES:
        errors["prefecture"] = "都道府県の値が正しくありません"

    if not data.city.strip():
        errors["city"] = "市区町村は必須です"
    elif len(data.city) > 100:
        errors["city"] = "市区町村は100文字以内で入力してください"

    if not data.address_line1.strip():
        errors["address_line1"] = "住所は必須です"
    elif len(data.address_line1) > 200:
        errors["address_line1"] = "住所は200文字以内で入力してください"

    if data.address_line2 and len(data.address_line2) > 200:
        errors["address_line2"] = "建物名・部屋番号は200文字以内で入力してください"

    return FieldValidation(is_valid=not errors, errors=errors)

def validate_customer_data(data: CustomerData) -> FieldValidation:
    errors: Dict[str, str] = {}

    if not data.customer_name.strip():
        errors["customer_name"] = "お名前は必須です"
    elif len(data.customer_name) > 100:
        errors["customer_name"] = "お名前は100文字以内で入力してください"

    if not data.customer_email.strip():
        errors["customer_email"] = "メールアドレスは必須です"
    elif not validate_email(data.customer_email):
        errors["customer_email"] = "メールアドレスの形式が正しくありません"

    if not data.customer_phone.strip():
        errors["customer_phone"] = "電話番号は必須です"
    elif not validate_phone_number(data.customer_phone):
        errors["customer_phone"] = "電話番号の形式が正しくありません（例：090-1234-5678）"

    errors.update(validate_address(data.address()).errors)
    return FieldValidation(is_valid=not errors, errors=errors)

class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...
    async def set(self, key: str, value: str) -> None: ...
    async def delete(self, key: str) -> None: ...

class InMemoryKeyValueStore:
    def __init__(self):
        self._values: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

class JsonFileKeyValueStore:
    """
    One file per key under `directory`.
    """

    def __init__(self, directory: Path):
        self.directory = directory
        ensure_directory_exists(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    async def set(self, key: str, value: str) -> None:
        async with aiofiles.open(self._path(key), "w", encoding="utf-8") as f:
            await f.write(value)

    async def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

class CustomerDataStore:
    """
    Persists the customer form between steps for one checkout flow.
    Storage failures are logged and never interrupt the flow.
    """

    def __init__(self, store: KeyValueStore, scope: str):
        self.store = store
        self.key = f"{CUSTOMER_DATA_KEY}_{scope}"

    async def load(self) -> CustomerData:
        try:
            saved = await self.store.get(self.key)
            if saved:
                # Stored data may predate newer fields; merge over the defaults
                return CustomerData(**{**CustomerData().model_dump(), **json.loads(saved)})
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load customer data: {str(e)}")
        return CustomerData()

    async def save(self, data: CustomerData) -> None:
        try:
            await self.store.set(self.key, data.model_dump_json())
        except OSError as e:
            logger.error(f"Failed to save customer data: {str(e)}")

    async def clear(self) -> None:
        try:
            await self.store.delete(self.key)
        except OSError as e:
            logger.error(f"Failed to clear customer data: {str(e)}")
