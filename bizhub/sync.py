# bizhub/sync.py
"""
Cross-app synchronization between Affiliate HQ (sales, expenses), the
Project Tracker (billing projects) and the Financial Tracker (transactions,
recurring transactions).

Every Sale/Expense holds an ``external_id`` pointing at its mirror in the
finance domain, and the mirror's ``external_id`` points back. The pair is kept
in step here, not by a foreign key. A missing mirror is recreated on save
and ignored on delete.
"""
import logging

from . import db
from .auth import has_project_access
from .models import Transaction, RecurringTransaction

logger = logging.getLogger("bizhub.sync")

SOURCE_MANUAL = "manual"
SOURCE_AFFILIATE = "affiliatehq"
SOURCE_RECURRING = "recurring"
SOURCE_PROJECT_TRACKER = "project_tracker"

# (name, type, color) of the landing categories for mirrored entries
AFFILIATE_SALES_CATEGORY = ("Affiliate Sales", "income", "#10b981")
AFFILIATE_EXPENSES_CATEGORY = ("Affiliate Expenses", "expense", "#ef4444")
SERVICES_CATEGORY = ("Services", "income", "#f97316")

FREQUENCY_MAP = {
    'daily': 'daily',
    'weekly': 'weekly',
    'biweekly': 'biweekly',
    'monthly': 'monthly',
    'yearly': 'yearly',
}


# ---------------- Helpers ----------------
def get_or_create_category(name, type_, color):
    """Return the id of the category called `name`, creating it on first use"""
    db.execute_db(
        "INSERT OR IGNORE INTO categories (name, type, color) VALUES (?, ?, ?)",
        (name, type_, color)
    )
    row = db.query_db("SELECT id FROM categories WHERE name = ?", (name,), one=True)
    return row['id']


def sale_description(sale, project_name=None):
    if project_name:
        return f"{sale.platform} - {project_name}"
    return f"{sale.platform} Sale"


def expense_description(expense, project_name=None):
    desc = f"{expense.description} ({expense.category})" if expense.description else expense.category
    return f"{desc} - {project_name}" if project_name else desc


def _update_existing(table, record_id, values):
    """UPDATE a row by id if it still exists. Returns False when it is gone."""
    existing = db.query_db(f"SELECT id FROM {table} WHERE id = ?", (record_id,), one=True)
    if not existing:
        return False
    assignments = ", ".join(f"{col} = ?" for col in values)
    db.execute_db(
        f"UPDATE {table} SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (*values.values(), record_id)
    )
    return True


def _set_external_id(table, record_id, external_id):
    db.execute_db(
        f"UPDATE {table} SET external_id = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (external_id, record_id)
    )


def _delete_quietly(table, record_id):
    if not record_id:
        return
    try:
        deleted = db.execute_db(f"DELETE FROM {table} WHERE id = ?", (record_id,), rowcount=True)
        if not deleted:
            logger.debug(f"{table} row {record_id} already gone")
    except Exception as e:
        logger.warning(f"Could not delete {table} row {record_id}: {e}")


def _update_quietly(table, record_id, values):
    try:
        if not _update_existing(table, record_id, values):
            logger.debug(f"{table} row {record_id} not found, nothing to update")
    except Exception as e:
        logger.warning(f"Could not update {table} row {record_id}: {e}")


def _create_transaction(description, amount, type_, date, category_id, source, external_id):
    tx_id = db.execute_db(
        """INSERT INTO transactions (description, amount, type, date, category_id, source, external_id)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (description, amount, type_, date, category_id, source, external_id)
    )
    return Transaction.from_row(db.query_db("SELECT * FROM transactions WHERE id = ?", (tx_id,), one=True))


# ---------------- Affiliate HQ -> Financial Tracker ----------------
def sync_sale_to_transaction(sale, project_name=None):
    """Mirror a sale into an income transaction.

    Returns the new Transaction when one was created, None when the existing
    mirror was updated in place.
    """
    description = sale_description(sale, project_name)
    category_id = get_or_create_category(*AFFILIATE_SALES_CATEGORY)

    if sale.external_id:
        updated = _update_existing("transactions", sale.external_id, {
            "description": description,
            "amount": sale.amount,
            "date": sale.sale_date,
            "category_id": category_id,
        })
        if updated:
            return None
        logger.warning(f"Sale {sale.id} points at missing transaction {sale.external_id}, relinking")
        _set_external_id("sales", sale.id, None)
        sale.external_id = None

    transaction = _create_transaction(
        description, sale.amount, "income", sale.sale_date,
        category_id, SOURCE_AFFILIATE, sale.id
    )
    _set_external_id("sales", sale.id, transaction.id)
    sale.external_id = transaction.id
    logger.info(f"Sale {sale.id} mirrored as transaction {transaction.id}")
    return transaction


def sync_expense_to_transaction(expense, project_name=None):
    """Mirror a one-time expense into an expense transaction"""
    description = expense_description(expense, project_name)
    category_id = get_or_create_category(*AFFILIATE_EXPENSES_CATEGORY)

    if expense.external_id:
        updated = _update_existing("transactions", expense.external_id, {
            "description": description,
            "amount": expense.amount,
            "date": expense.expense_date,
            "category_id": category_id,
        })
        if updated:
            return None
        logger.warning(f"Expense {expense.id} points at missing transaction {expense.external_id}, relinking")
        _set_external_id("expenses", expense.id, None)
        expense.external_id = None

    transaction = _create_transaction(
        description, expense.amount, "expense", expense.expense_date,
        category_id, SOURCE_AFFILIATE, expense.id
    )
    _set_external_id("expenses", expense.id, transaction.id)
    expense.external_id = transaction.id
    logger.info(f"Expense {expense.id} mirrored as transaction {transaction.id}")
    return transaction


def sync_expense_to_recurring_transaction(expense, project_name=None):
    """Mirror a recurring expense into a recurring transaction"""
    description = expense_description(expense, project_name)
    category_id = get_or_create_category(*AFFILIATE_EXPENSES_CATEGORY)
    frequency = FREQUENCY_MAP.get(expense.frequency or 'monthly', 'monthly')

    if expense.external_id:
        updated = _update_existing("recurring_transactions", expense.external_id, {
            "description": description,
            "amount": expense.amount,
            "start_date": expense.expense_date,
            "frequency": frequency,
            "category_id": category_id,
        })
        if updated:
            return None
        logger.warning(f"Expense {expense.id} points at missing recurring transaction {expense.external_id}, relinking")
        _set_external_id("expenses", expense.id, None)
        expense.external_id = None

    recurring_id = db.execute_db(
        """INSERT INTO recurring_transactions
           (description, amount, type, category_id, frequency, start_date, next_date, is_active, source, external_id)
           VALUES (?, ?, 'expense', ?, ?, ?, ?, 1, ?, ?)""",
        (description, expense.amount, category_id, frequency,
         expense.expense_date, expense.expense_date, SOURCE_AFFILIATE, expense.id)
    )
    _set_external_id("expenses", expense.id, recurring_id)
    expense.external_id = recurring_id
    logger.info(f"Expense {expense.id} mirrored as recurring transaction {recurring_id}")
    return RecurringTransaction.from_row(
        db.query_db("SELECT * FROM recurring_transactions WHERE id = ?", (recurring_id,), one=True)
    )


def sync_expense(expense, project_name=None):
    """Run the sync path matching the expense's type"""
    if expense.is_recurring:
        return sync_expense_to_recurring_transaction(expense, project_name)
    return sync_expense_to_transaction(expense, project_name)


def delete_synced_transaction(external_id):
    """Remove a sale's/expense's mirror transaction; a missing row is fine"""
    _delete_quietly("transactions", external_id)


def delete_synced_recurring_transaction(external_id):
    _delete_quietly("recurring_transactions", external_id)


def delete_expense_mirror(expense):
    """Remove whichever mirror kind the expense's type implies"""
    if expense.is_recurring:
        delete_synced_recurring_transaction(expense.external_id)
    else:
        delete_synced_transaction(expense.external_id)


# ---------------- Financial Tracker -> Affiliate HQ ----------------
def _push_to_linked(table, record_id, values, user):
    row = db.query_db(f"SELECT project_id FROM {table} WHERE id = ?", (record_id,), one=True)
    if not row:
        logger.debug(f"{table} row {record_id} not found, nothing to update")
        return
    if user is not None and not has_project_access(user, row['project_id']):
        logger.warning(f"{table} row {record_id} is outside the caller's projects, not updated")
        return
    _update_quietly(table, record_id, values)


def sync_transaction_to_affiliatehq(transaction, user=None):
    """Push amount/date of an edited transaction onto its linked sale or expense.

    Mirrors created by Affiliate HQ or the Project Tracker are skipped, and no
    affiliate record is ever created from here: that needs a project context
    the transaction does not carry. When `user` is given, records in projects
    that user cannot see are left untouched.
    """
    if transaction.source in (SOURCE_AFFILIATE, SOURCE_PROJECT_TRACKER):
        return
    if not transaction.external_id:
        return

    if transaction.type == "income":
        _push_to_linked("sales", transaction.external_id, {
            "amount": transaction.amount,
            "sale_date": transaction.date,
        }, user)
    elif transaction.type == "expense":
        _push_to_linked("expenses", transaction.external_id, {
            "amount": transaction.amount,
            "expense_date": transaction.date,
        }, user)


def delete_synced_affiliatehq_entry(external_id, type_, transaction_id):
    """Delete the sale (income) or expense (expense) a mirror transaction came from.

    Only call this for transactions whose source is affiliatehq. The record is
    deleted only when its own external_id points back at `transaction_id`.
    """
    if not external_id:
        return
    if type_ == "income":
        query = "DELETE FROM sales WHERE id = ? AND external_id = ?"
    elif type_ == "expense":
        query = "DELETE FROM expenses WHERE id = ? AND external_id = ? AND expense_type = 'one-time'"
    else:
        return
    try:
        deleted = db.execute_db(query, (external_id, transaction_id), rowcount=True)
        if not deleted:
            logger.warning(f"Transaction {transaction_id} has no back-linked {type_} entry {external_id}, nothing deleted")
    except Exception as e:
        logger.warning(f"Could not delete {type_} entry {external_id} of transaction {transaction_id}: {e}")


# ---------------- Project Tracker -> Financial Tracker ----------------
def billing_description(project):
    if project.client_name:
        return f"{project.project_name} - {project.client_name}"
    return project.project_name


def find_billing_transaction(project_id):
    return db.query_db(
        "SELECT * FROM transactions WHERE source = ? AND external_id = ? ORDER BY id LIMIT 1",
        (SOURCE_PROJECT_TRACKER, project_id), one=True
    )


def sync_billing_project_to_transaction(project):
    """Upsert the income transaction for a billing project, keyed by (source, external_id).

    A project without a positive cost has no mirror.
    """
    if not project.cost or project.cost <= 0:
        delete_synced_billing_transaction(project.id)
        return None

    category_id = get_or_create_category(*SERVICES_CATEGORY)
    description = billing_description(project)
    tx_date = project.date or f"{project.month}-01"

    existing = find_billing_transaction(project.id)
    if existing:
        _update_existing("transactions", existing['id'], {
            "description": description,
            "amount": project.cost,
            "date": tx_date,
            "category_id": category_id,
        })
        return None

    transaction = _create_transaction(
        description, project.cost, "income", tx_date,
        category_id, SOURCE_PROJECT_TRACKER, project.id
    )
    logger.info(f"Billing project {project.id} mirrored as transaction {transaction.id}")
    return transaction


def delete_synced_billing_transaction(project_id):
    try:
        db.execute_db(
            "DELETE FROM transactions WHERE source = ? AND external_id = ?",
            (SOURCE_PROJECT_TRACKER, project_id)
        )
    except Exception as e:
        logger.warning(f"Could not delete transaction for billing project {project_id}: {e}")
