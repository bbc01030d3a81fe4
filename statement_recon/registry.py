"""Loading of account registries and statement files from disk."""

import json
import os
from typing import Dict, List, Optional, Sequence

import pandas as pd

from statement_recon.models import BankAccount, SourceDocument
from statement_recon.utils.logger import get_logger
from statement_recon.utils.validators import ValidationError, validate_file_path, validate_pdf_file

logger = get_logger(__name__)


def load_accounts(path: str) -> List[BankAccount]:
    """Read a registry of bank accounts.

    Args:
        path: ``.json`` file holding a list of objects, or a ``.csv`` file
            with one account per row.

    Returns:
        List of accounts in file order.

    Raises:
        ValidationError: If the file is missing, of an unknown type, or malformed.
    """
    validate_file_path(path)
    _, ext = os.path.splitext(path.lower())

    if ext == ".json":
        try:
            with open(path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid account registry {path}: {e.msg}")
        if isinstance(rows, dict):
            rows = rows.get("accounts", [])
        if not isinstance(rows, list):
            raise ValidationError(f"Account registry {path} must contain a list of accounts")
    elif ext == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        rows = df.to_dict(orient="records")
    else:
        raise ValidationError(f"Unsupported account registry format '{ext}'. Use .json or .csv")

    accounts = []
    for position, row in enumerate(rows, 1):
        if not isinstance(row, dict):
            raise ValidationError(f"Account entry {position} in {path} is not an object")
        try:
            accounts.append(BankAccount.from_dict(row))
        except ValueError as e:
            raise ValidationError(f"Account entry {position} in {path}: {str(e)}")

    logger.info(f"Loaded {len(accounts)} accounts from {path}")
    return accounts


def load_documents(
    paths: Sequence[str],
    passwords: Optional[Dict[str, str]] = None,
    max_size_mb: Optional[int] = None,
) -> List[SourceDocument]:
    """Read statement PDFs into source documents.

    Args:
        paths: PDF file paths.
        passwords: Optional passwords keyed by file name or full path.
        max_size_mb: Optional size limit per file.

    Returns:
        Documents in the order given.

    Raises:
        ValidationError: If a path is not a readable PDF within the size limit.
    """
    passwords = passwords or {}
    documents = []
    for path in paths:
        if max_size_mb is None:
            validate_pdf_file(path)
        else:
            validate_pdf_file(path, max_size_mb)
        filename = os.path.basename(path)
        with open(path, "rb") as f:
            payload = f.read()
        documents.append(
            SourceDocument(
                payload=payload,
                filename=filename,
                password=passwords.get(path) or passwords.get(filename),
            )
        )
    return documents


def find_statement_files(directory: str, extensions: Sequence[str] = (".pdf",)) -> List[str]:
    """List statement files in a directory, sorted by name."""
    if not os.path.isdir(directory):
        raise ValidationError(f"Path is not a directory: {directory}")
    return sorted(
        os.path.join(directory, name)
        for name in os.listdir(directory)
        if os.path.splitext(name.lower())[1] in extensions
    )
