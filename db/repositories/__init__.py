"""Repository layer for the CRM enrichment core.

Every function takes the session and the caller's tenant id and filters on
organization_id explicitly, in addition to row-level security:
- contacts: get, get_many, list_ids, get_ids_by_emails, insert, update_fields, count
- companies: get_ids_by_names, insert
- roles: get_for_contacts, exists, insert
- staleness: get_for_contact(s), insert_many, update_score, set_verified,
             get_queue, count_flagged, count_verified_since
- proposals: get, list_by_contact, latest_pending, create, record_review, count_pending
"""
