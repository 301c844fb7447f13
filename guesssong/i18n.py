from __future__ import annotations

from typing import Optional

from PyQt5.QtCore import Qt
from PyQt5.QtWidgets import QCheckBox, QGroupBox, QLabel, QLineEdit, QPushButton, QWidget

LANG_EN = "en"
LANG_HE = "he"

_TRANSLATIONS = {
    LANG_HE: {
        "Clip Editor": "עורך קטע",
        "Start Time": "זמן התחלה",
        "End Time": "זמן סיום",
        "Clip Length": "אורך קטע",
        "Play": "נגן",
        "Pause": "השהה",
        "Preview Clip": "השמע קטע",
        "Reset": "איפוס",
        "Save": "שמור",
        "Cancel": "ביטול",
        "Song Title": "שם השיר",
        "Release Date": "תאריך יציאה",
        "Views": "צפיות",
        "Difficulty": "רמת קושי",
        "Tags": "תגיות",
        "Search songs...": "חיפוש שירים...",
        "Select a track": "בחר שיר",
        "Loading track...": "טוען שיר...",
        "No track loaded": "לא נטען שיר",
        "Playback error": "שגיאת ניגון",
        "Please select a YouTube video": "אנא בחר סרטון יוטיוב",
        "Please enter a song title": "אנא הזן שם שיר",
    },
}

_PREFIX_TRANSLATIONS = {
    LANG_HE: {
        "Playback error: ": "שגיאת ניגון: ",
        "Song not found: ": "השיר לא נמצא: ",
    },
}

_RTL_LANGUAGES = {LANG_HE}


def normalize_language(value: str) -> str:
    raw = str(value or "").strip().lower().replace("-", "_")
    if raw in {"he", "he_il", "iw", "hebrew"}:
        return LANG_HE
    return LANG_EN


def set_current_language(value: str) -> str:
    global _current_language
    _current_language = normalize_language(value)
    return _current_language


def get_current_language() -> str:
    return _current_language


def is_right_to_left(language: Optional[str] = None) -> bool:
    return normalize_language(language or _current_language) in _RTL_LANGUAGES


def tr(text: str, language: Optional[str] = None) -> str:
    return translate_text(text, language)


def translate_text(text: str, language: Optional[str] = None) -> str:
    if not isinstance(text, str) or not text:
        return text
    lang = normalize_language(language or _current_language)
    if lang == LANG_EN:
        return text
    table = _TRANSLATIONS.get(lang, {})
    if text in table:
        return table[text]
    for prefix, translated_prefix in _PREFIX_TRANSLATIONS.get(lang, {}).items():
        if text.startswith(prefix):
            return translated_prefix + text[len(prefix):]
    return text


def localize_widget_tree(widget: QWidget, language: Optional[str] = None) -> None:
    lang = normalize_language(language or _current_language)
    widget.setLayoutDirection(Qt.RightToLeft if lang in _RTL_LANGUAGES else Qt.LeftToRight)
    _localize_widget(widget, lang)
    for child in widget.findChildren(QWidget):
        _localize_widget(child, lang)


def _ensure_source_property(obj, prop_name: str, current_value: str, language: str) -> str:
    source = obj.property(prop_name)
    if isinstance(source, str) and source:
        return source
    if language != LANG_EN and isinstance(current_value, str) and current_value:
        obj.setProperty(prop_name, current_value)
    return current_value


def _localized(source: str, language: str) -> str:
    return source if language == LANG_EN else translate_text(source, language)


def _localize_widget(widget: QWidget, language: str) -> None:
    title = widget.windowTitle()
    if title:
        source_title = _ensure_source_property(widget, "_i18n_source_window_title", title, language)
        widget.setWindowTitle(_localized(source_title, language))

    if isinstance(widget, (QLabel, QPushButton, QCheckBox)):
        source = _ensure_source_property(widget, "_i18n_source_text", widget.text(), language)
        target = _localized(source, language)
        if widget.text() != target:
            widget.setText(target)
    elif isinstance(widget, QGroupBox):
        source = _ensure_source_property(widget, "_i18n_source_title", widget.title(), language)
        target = _localized(source, language)
        if widget.title() != target:
            widget.setTitle(target)
    elif isinstance(widget, QLineEdit):
        placeholder = widget.placeholderText()
        if placeholder:
            source = _ensure_source_property(widget, "_i18n_source_placeholder", placeholder, language)
            widget.setPlaceholderText(_localized(source, language))


_current_language = LANG_EN
