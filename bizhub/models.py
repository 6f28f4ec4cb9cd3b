# bizhub/models.py
# lightweight model classes (not DB-bound ORM)


class Record:
    @classmethod
    def from_row(cls, row):
        if row is None:
            return None
        return cls(**dict(row))

    def to_dict(self):
        return dict(self.__dict__)


class Sale(Record):
    def __init__(self, id, project_id, platform, amount, sale_date, sales_count=1,
                 external_id=None, created_at=None, updated_at=None):
        self.id = id
        self.project_id = project_id
        self.platform = platform
        self.amount = amount
        self.sale_date = sale_date
        self.sales_count = sales_count
        self.external_id = external_id
        self.created_at = created_at
        self.updated_at = updated_at


class Expense(Record):
    def __init__(self, id, project_id, category, amount, expense_date, description=None,
                 expense_type='one-time', frequency=None, external_id=None,
                 created_at=None, updated_at=None):
        self.id = id
        self.project_id = project_id
        self.category = category
        self.description = description
        self.amount = amount
        self.expense_type = expense_type
        self.frequency = frequency
        self.expense_date = expense_date
        self.external_id = external_id
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def is_recurring(self):
        return self.expense_type == 'recurring'


class Category(Record):
    def __init__(self, id, name, type, color='#6b7280', created_at=None):
        self.id = id
        self.name = name
        self.type = type
        self.color = color
        self.created_at = created_at


class Transaction(Record):
    def __init__(self, id, description, amount, type, date, category_id=None,
                 source='manual', external_id=None, created_at=None, updated_at=None):
        self.id = id
        self.description = description
        self.amount = amount
        self.type = type
        self.date = date
        self.category_id = category_id
        self.source = source
        self.external_id = external_id
        self.created_at = created_at
        self.updated_at = updated_at


class RecurringTransaction(Record):
    def __init__(self, id, description, amount, type, frequency, start_date, next_date,
                 category_id=None, is_active=1, source='manual', external_id=None,
                 created_at=None, updated_at=None):
        self.id = id
        self.description = description
        self.amount = amount
        self.type = type
        self.category_id = category_id
        self.frequency = frequency
        self.start_date = start_date
        self.next_date = next_date
        self.is_active = is_active
        self.source = source
        self.external_id = external_id
        self.created_at = created_at
        self.updated_at = updated_at

    def to_dict(self):
        data = super().to_dict()
        data['is_active'] = bool(self.is_active)
        return data


class BillingProject(Record):
    def __init__(self, id, project_name, date, month, user_id, client_name='',
                 description='', cost=None, status='unpaid', created_at=None):
        self.id = id
        self.project_name = project_name
        self.client_name = client_name
        self.description = description
        self.cost = cost
        self.status = status
        self.date = date
        self.month = month
        self.user_id = user_id
        self.created_at = created_at
