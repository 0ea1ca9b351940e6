from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from platforms.types import Keyboard, KeyboardButton
from cbdata import encode_cb

MAIN_MENU_CALLBACK = encode_cb("system", "menu")


@dataclass(frozen=True)
class MenuItem:
    label: str
    callback_data: str
    icon: str = ""

    @property
    def text(self) -> str:
        return f"{self.icon} {self.label}" if self.icon else self.label

    def to_button(self) -> KeyboardButton:
        return KeyboardButton(text=self.text, callback_data=self.callback_data)


def build_keyboard(
    items: Sequence[MenuItem],
    width: int = 2,
    footer: Optional[Sequence[MenuItem]] = None,
) -> Keyboard:
    """
    Lay `items` out in rows of at most `width` buttons, in input order.
    The last row is left short rather than padded. `footer`, when given,
    becomes one extra row at the bottom.
    """
    if width < 1:
        raise ValueError(f"keyboard width must be at least 1, got {width}")

    keyboard = Keyboard()
    for start in range(0, len(items), width):
        keyboard.add_row(*(item.to_button() for item in items[start:start + width]))
    if footer:
        keyboard.add_row(*(item.to_button() for item in footer))
    return keyboard


def back_to_menu_item() -> MenuItem:
    return MenuItem("메인 메뉴", MAIN_MENU_CALLBACK, icon="🏠")


def back_to_menu_kb() -> Keyboard:
    """Single 'return to main menu' button."""
    return build_keyboard([back_to_menu_item()], width=1)


def main_menu_kb(entries: Iterable, width: int = 2) -> Keyboard:
    """
    Main menu from feature registrations (anything with key, display_name
    and icon). Help and status sit in the footer row.
    """
    items = [
        MenuItem(entry.display_name, encode_cb(entry.key, "menu"), icon=entry.icon)
        for entry in entries
        if entry.key != "system"
    ]
    footer = [
        MenuItem("도움말", encode_cb("system", "help"), icon="❓"),
        MenuItem("상태", encode_cb("system", "status"), icon="📊"),
    ]
    return build_keyboard(items, width=width, footer=footer)


def feature_menu_kb(
    feature_key: str,
    actions: Sequence[MenuItem],
    width: int = 2,
    back_to: Optional[str] = None,
) -> Keyboard:
    """
    Keyboard for a feature screen: its actions, then a footer with a link
    back to `back_to` (a sub action of the same feature) and the main menu.
    """
    footer: List[MenuItem] = []
    if back_to:
        footer.append(MenuItem("뒤로", encode_cb(feature_key, back_to), icon="🔙"))
    footer.append(back_to_menu_item())
    return build_keyboard(list(actions), width=width, footer=footer)
