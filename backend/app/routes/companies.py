from flask import Blueprint, request, abort
from sqlalchemy import select, func
from app import get_db
from app.models.company import Company
from app.decorators.auth import require_permissions
from app.decorators.audit import audit_log
from app.errors import ConflictError
from app.utils.listing import paged_list_response
from app.utils.sorting import apply_multi_sort
from app.utils.filters import apply_filters, contains, eq
from app.utils.validation import required_text, validate_status

companies_bp = Blueprint('companies', __name__)


def _company_json(c: Company):
    return {'id': c.id, 'code': c.code, 'name': c.name, 'company_type': c.company_type}


def _code_taken(session, code: str) -> bool:
    return session.execute(
        select(Company.id).where(func.upper(Company.code) == code.upper())
    ).first() is not None


@companies_bp.get('')
@require_permissions('po.view')
def list_companies():
    session = get_db()
    q = session.query(Company).filter(Company.is_deleted.is_(False))
    filter_specs = {
        'company_type': {'op': eq(Company.company_type), 'coerce': str.upper, 'choices': Company.ALL_TYPES},
        'q': {'op': contains(Company.name, Company.code)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'code': Company.code, 'name': Company.name, 'updated_at': Company.updated_at, 'id': Company.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Company.id)
    return paged_list_response(q, _company_json)


@companies_bp.get('/check-code')
@require_permissions('companies.manage')
def check_code():
    code = (request.args.get('code') or '').strip()
    if not code:
        abort(400, description='code required')
    return {'success': True, 'code': code, 'available': not _code_taken(get_db(), code)}


@companies_bp.post('')
@require_permissions('companies.manage')
@audit_log('COMPANY.CREATE', entity='Company', entity_id_key='id', meta_keys=['code', 'company_type'])
def create_company():
    data = request.json or {}
    code = required_text(data, 'code')
    name = required_text(data, 'name')
    company_type = validate_status(str(data.get('company_type') or Company.TYPE_BUYER).upper(), Company.ALL_TYPES, 'company_type')
    session = get_db()
    if _code_taken(session, code):
        raise ConflictError(f'Company code {code} already exists', extra={'code': code})
    company = Company(code=code, name=name, company_type=company_type)
    session.add(company)
    session.commit()
    return {'success': True, **_company_json(company)}, 201
