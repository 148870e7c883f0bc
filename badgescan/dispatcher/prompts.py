"""
Extraction prompt shared by every provider adapter.

Output contract for downstream consumers (the wording below may be tuned,
this shape may not):

    Name: <value or ->
    Company: <value or ->
    Role: <value or ->
    Credentials: <value or ->

One record per person visible in the image, records separated by a single
blank line, and a literal "-" for any field that is not visibly present.
"""

RECORD_FIELDS: tuple[str, ...] = ("Name", "Company", "Role", "Credentials")

MISSING_FIELD_PLACEHOLDER = "-"

EXTRACTION_PROMPT = (
    "Analyze this image and extract text information visible such as: names, "
    "company names, job titles, and professional credentials. Format the "
    "information as:\n"
    "Name: [...]\n"
    "Company: [...]\n"
    "Role: [...]\n"
    "Credentials: [...]\n\n"
    "For multiple entries, separate with a blank line. For anything that is "
    "not visible, simply write '-' for consistency."
)
