"""Built-in multilingual texts used to complete or replace classifier output."""

from __future__ import annotations


LANGUAGE_ALIASES: dict[str, str] = {
    "en": "en",
    "english": "en",
    "hi": "hi",
    "hindi": "hi",
    "kn": "kn",
    "kannada": "kn",
}

LANGUAGE_NAMES: dict[str, str] = {"en": "English", "hi": "Hindi", "kn": "Kannada"}

DEFAULT_DESCRIPTION: dict[str, str] = {
    "en": "Analysis complete. See the treatment recommendations below.",
    "hi": "विश्लेषण पूरा हुआ। नीचे दिए गए उपचार सुझाव देखें।",
    "kn": "ವಿಶ್ಲೇಷಣೆ ಪೂರ್ಣಗೊಂಡಿದೆ. ಕೆಳಗಿನ ಚಿಕಿತ್ಸಾ ಸಲಹೆಗಳನ್ನು ನೋಡಿ.",
}

DEFAULT_SOLUTIONS: dict[str, str] = {
    "en": "Consult your local agricultural officer for a specific treatment plan.",
    "hi": "विशेष उपचार के लिए अपने स्थानीय कृषि अधिकारी से संपर्क करें।",
    "kn": "ನಿರ್ದಿಷ್ಟ ಚಿಕಿತ್ಸೆಗಾಗಿ ನಿಮ್ಮ ಸ್ಥಳೀಯ ಕೃಷಿ ಅಧಿಕಾರಿಯನ್ನು ಸಂಪರ್ಕಿಸಿ.",
}

DEFAULT_PREVENTION: dict[str, str] = {
    "en": "Rotate crops, keep the field clean and grow disease-resistant varieties.",
    "hi": "फसल चक्र अपनाएं, खेत को साफ रखें और रोग-रोधी किस्में उगाएं।",
    "kn": "ಬೆಳೆ ಪರಿವರ್ತನೆ ಮಾಡಿ, ಹೊಲವನ್ನು ಸ್ವಚ್ಛವಾಗಿಡಿ ಮತ್ತು ರೋಗ ನಿರೋಧಕ ತಳಿಗಳನ್ನು ಬೆಳೆಸಿ.",
}

_DEFAULT_TTS_TEMPLATES: dict[str, str] = {
    "en": "Your {crop} has {issue}. Please check the treatment recommendations.",
    "hi": "आपकी {crop} फसल में {issue} है। कृपया उपचार सुझाव देखें।",
    "kn": "ನಿಮ್ಮ {crop} ಬೆಳೆಗೆ {issue} ಇದೆ. ದಯವಿಟ್ಟು ಚಿಕಿತ್ಸಾ ಸಲಹೆಗಳನ್ನು ನೋಡಿ.",
}

_FALLBACK_DESCRIPTION_TEMPLATES: dict[str, str] = {
    "en": (
        "Unable to complete the analysis: {reason}. Please try again with a clearer "
        "photo of the affected part of the plant."
    ),
    "hi": "विश्लेषण पूरा नहीं हो सका: {reason}। कृपया प्रभावित भाग की साफ तस्वीर के साथ फिर से प्रयास करें।",
    "kn": "ವಿಶ್ಲೇಷಣೆ ಪೂರ್ಣಗೊಳ್ಳಲಿಲ್ಲ: {reason}. ದಯವಿಟ್ಟು ಬಾಧಿತ ಭಾಗದ ಸ್ಪಷ್ಟ ಚಿತ್ರದೊಂದಿಗೆ ಮತ್ತೆ ಪ್ರಯತ್ನಿಸಿ.",
}

FALLBACK_SOLUTIONS: dict[str, str] = {
    "en": (
        "Tips for a better photo: 1) use natural daylight 2) focus on the affected area "
        "3) include both healthy and affected parts."
    ),
    "hi": "बेहतर तस्वीर के लिए: 1) प्राकृतिक रोशनी में लें 2) प्रभावित हिस्से पर फोकस करें 3) स्वस्थ और प्रभावित दोनों हिस्से शामिल करें।",
    "kn": "ಉತ್ತಮ ಚಿತ್ರಕ್ಕಾಗಿ: 1) ನೈಸರ್ಗಿಕ ಬೆಳಕು ಬಳಸಿ 2) ಬಾಧಿತ ಭಾಗದ ಮೇಲೆ ಕೇಂದ್ರೀಕರಿಸಿ 3) ಆರೋಗ್ಯಕರ ಮತ್ತು ಬಾಧಿತ ಎರಡೂ ಭಾಗಗಳನ್ನು ಸೇರಿಸಿ.",
}

FALLBACK_PREVENTION: dict[str, str] = {
    "en": "Good image quality is needed for an accurate diagnosis.",
    "hi": "सटीक पहचान के लिए तस्वीर की अच्छी गुणवत्ता आवश्यक है।",
    "kn": "ನಿಖರ ಪತ್ತೆಗಾಗಿ ಉತ್ತಮ ಗುಣಮಟ್ಟದ ಚಿತ್ರ ಅಗತ್ಯ.",
}

FALLBACK_TTS: dict[str, str] = {
    "en": "Could not detect the problem. Please try again with a clearer photo.",
    "hi": "समस्या का पता नहीं चला। कृपया साफ तस्वीर के साथ फिर से प्रयास करें।",
    "kn": "ಸಮಸ್ಯೆ ಪತ್ತೆಯಾಗಲಿಲ್ಲ. ದಯವಿಟ್ಟು ಸ್ಪಷ್ಟ ಚಿತ್ರದೊಂದಿಗೆ ಮತ್ತೆ ಪ್ರಯತ್ನಿಸಿ.",
}


def default_tts(crop: str, issue: str) -> dict[str, str]:
    return {
        lang: template.format(crop=crop, issue=issue)
        for lang, template in _DEFAULT_TTS_TEMPLATES.items()
    }


def fallback_description(reason: str) -> dict[str, str]:
    return {
        lang: template.format(reason=reason)
        for lang, template in _FALLBACK_DESCRIPTION_TEMPLATES.items()
    }
