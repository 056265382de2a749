import re

NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw, country_code="91"):
    """
    Digits-only international form.

    10 digits get the country code prefixed; 12 digits that do not start
    with the code keep only the last 10 behind it. Applying it twice gives
    the same result.
    """
    digits = NON_DIGITS.sub("", str(raw or ""))
    if len(digits) == 10:
        return f"{country_code}{digits}"
    if len(digits) == 12 and not digits.startswith(country_code):
        return f"{country_code}{digits[-10:]}"
    return digits
