"""Airtable table and field identifiers.

Field IDs are used instead of field names so renaming a column in the
Airtable UI does not break the portal. Keys are the attribute names of the
matching models in ``minimusiker.core.models``.
"""

# Events: one school visit
EVENTS_TABLE_ID = "tblVWx1RrsGRjsNn5"
EVENTS_FIELDS = {
    "event_id": "fldcNaHZyr6E5khDe",
    "school_name": "fld5QcpEsDFrLun6w",
    "event_date": "fld7pswBblm9jlOsS",
    "event_type": "fldz3zdnYX7nTUz5y",
    "legacy_booking_id": "fldYrZSh7tdkwuWp4",
    "simplybook_booking": "fld7uGsPuXE7IxWXF",
    "assigned_staff": "fldhBVOflAYDxke2X",
    "assigned_engineer": "fldG2dDC0tUpFi3GA",
    "audio_pipeline_stage": "fldjzMXrRZH5JHLl7",
    "all_tracks_approved": "flduNxL3feUOEqvnO",
    "admin_approval_status": "fldLhkFTlS3wujkWE",
    "is_published": "fld8Ftv3QNp5HdFJJ",
    "is_schulsong": "fld2ml1yiecD1a5ms",
    "schulsong_only": "fld0NEerADUNdb4HQ",
    "schulsong_released_at": "fld0HSv4LlxBD2xg6",
    "deal_type": "fldDHdTGX2f5xET7K",
    "shirts_included": "fldgd0wgealwvR2kb",
    "einrichtung": "fldF3EjKlgIZnY44x",
}

CLASSES_TABLE_ID = "tbl1ISivPk94b4kUa"
CLASSES_FIELDS = {
    "class_id": "fld1dXGae9I7xldun",
    "event": "fldSSaeBuQDkOhOIT",
    "class_name": "fld1kaSb8my7q5mHt",
    "legacy_booking_id": "fldXGF3yXrHeI4vWn",
    "is_default": "fldJouWNH4fudWQl0",
    "total_children": "flddABwj9UilV2OtG",
    "main_teacher": "fldMRlC2ah8fYnKdE",
}

# Groups: classes singing together
GROUPS_TABLE_ID = "tblfSgrEZg9Kh0fAh"
GROUPS_FIELDS = {
    "group_id": "fld6BW3r6uAADjuMx",
    "group_name": "fldiqq6p37u8G6iGs",
    "member_classes": "fldyeuP6wYE3DRrXX",
    "event": "fldZXaZc6RW2mxQ9L",
    "created_by": "fldBTbEPKpZDX3rm2",
    "created_at": "fldyNvHcCiknzjvA7",
}

SONGS_TABLE_ID = "tblPjGWQlHuG8jp5X"
SONGS_FIELDS = {
    "title": "fldLjwkTwckDqT3Xl",
    "class_id": "fldK4wCT5oKZDN6sE",
    "event_id": "fldCKN3IXHPczIWfs",
    "artist": "fld8kOwPLIscK51yH",
    "notes": "fldZRLk0JP05VRDm6",
    "order": "fld2RSJGY8pAqBaej",
    "created_by": "fldva8udIq88Syq0p",
    "created_at": "fldw9R07novjsrvE5",
    "is_schulsong": "fldGD8nqVWmBwljxo",
    "group_id": "fldBiCxaHpdCVg9uH",
}

AUDIO_FILES_TABLE_ID = "tbloCM4tmH7mYoyXR"
AUDIO_FILES_FIELDS = {
    "filename": "fldOTWiFz8G1lE04c",
    "class_id": "fldAYW88oxtF5L5Bf",
    "event_id": "fldwtYA1GwhVf3Ia7",
    "song_id": "fldehSfLpy3iozdBt",
    "type": "fldOMmFN7BqHVAqfH",
    "r2_key": "fldvzj75CspwfOfPX",
    "uploaded_by": "fldJw0CU9eu3TOAY5",
    "uploaded_at": "fldKm5SbhEVVuGcFO",
    "duration_seconds": "fldNzuiQghH3FhmdU",
    "file_size_bytes": "fldGo0LsZEcy9X9jx",
    "status": "fldCAcEMu0IF1bWgz",
    "approval_status": "fldk2c7nHobPZt0Fq",
    "rejection_comment": "fldZBBZoq8I9HoL6E",
    "is_schulsong": "fldulI4CXcBkKtmUw",
    "teacher_approved_at": "fldw4EzJXRj6mQLX7",
}

TEACHERS_TABLE_ID = "tblLO2vXcgvNjrJ0T"
TEACHERS_FIELDS = {
    "name": "fld3GL8fRPSPhMw4J",
    "email": "fldkVlTMgLrLUrwlo",
    "phone": "fld68dyMBRoE2rMX4",
    "school_name": "fldPWSqdRUVxzCOly",
    "simplybook_booking_id": "fldoaHHkcyTgwaLO0",
    "magic_link_token": "fld8HA5AkDtuLhwpY",
    "token_expires_at": "fld5H6xvoPPN9wuDz",
    "linked_events": "fldKzStfhQEWTuVJ4",
    "created_at": "fldmnLMTKXgQFLh1W",
}

SCHOOL_BOOKINGS_TABLE_ID = "tblrktl5eLJEWE4M6"
SCHOOL_BOOKINGS_FIELDS = {
    "simplybook_id": "fldb5FI6ij00eICaT",
    "simplybook_hash": "fldCPoXaoI4MRrHm7",
    "school_name": "fldemoIoAHi7RgM7q",
    "school_contact_name": "fldlRful9AwfzUrOc",
    "school_contact_email": "fldv4f6768hTNZYWT",
    "school_phone": "fldWWvCFJgrjScr8R",
    "school_address": "fld9ADLgRgjBeuLCH",
    "school_postal_code": "fld1wXHFUtt2nX2Ia",
    "city": "fldiVb8duhKGIzDkD",
    "region": "fldWhJSIkeC3V5Dmz",
    "estimated_children": "fldqt0l7tq9ozOewd",
    "school_size_category": "fldJKJAVFZrpEH1B6",
    "simplybook_status": "fldvIdc6ABkZKCUC3",
    "start_date": "fldbCBy0CxsivACiZ",
    "end_date": "fldqQWgLRsYPoOY78",
    "portal_status": "fldaIkfXwwh3XA6Qa",
    "assigned_staff": "fldDz8ap9nevnAzp2",
}

PERSONEN_TABLE_ID = "tblu8iWectQaQGTto"
PERSONEN_FIELDS = {
    "name": "fldEBMBVfGSWpywKU",
    "email": "fldKCmnASEo1RhvLu",
    "phone": "fld8SFo4WPV5qqk9p",
    "roles": "fldoyimmjNZY3sBLa",
}

# Parent journey: one row per registered child
REGISTRATIONS_TABLE_ID = "parent_journey_table"
REGISTRATIONS_FIELDS = {
    "booking_id": "fldUB8dAiQd61VncB",
    "school_name": "fld2Rd4S9aWGOjkJI",
    "class_name": "fldJMcFElbkkPGhSe",
    "class_id": "fldtiPDposZlSD2lm",
    "registered_child": "flddZJuHdOqeighMf",
    "parent_first_name": "fldTeWfHG1TQJbzgr",
    "parent_email": "fldwiX1CSfJZS0AIz",
    "parent_telephone": "fldYljDGY0MPzgzDx",
    "parent_id": "fld4mmx0n71PSr1JM",
    "booking_date": "fldZx9CQHCvoqjJ71",
    "event_type": "fldOZ20fduUR0mboV",
}

CLOTHING_ORDERS_TABLE_ID = "tblooDCry5HYEJIwe"
CLOTHING_ORDERS_FIELDS = {
    "event": "fldXPy1Hf8T55rIah",
    "size_98_104": "fld3DyjDWE3vBI72h",
    "size_110_116": "fldbRc03gy0XnPMss",
    "size_122_128": "fldhsPatKmEUXXR32",
    "size_134_146": "fldp9aYPYZGUyXiCm",
    "size_152_164": "fldXGYTS0peHlmhMG",
    "last_updated_by": "flduc0lRXm1Y8nymF",
    "notes": "fld5iY0kFdvuABED9",
    "updated_at": "fldOAPppXo3iv1Ife",
}

# Shopify orders mirrored by the order webhooks
ORDERS_TABLE_ID = "tblGmKqEc1ty7k1wa"
ORDERS_FIELDS = {
    "order_id": "fldMceHWVHosTulzb",
    "order_number": "fldIjGk08RzgA8iAf",
    "event": "fldClmSiu42ex1Ddc",
    "booking_id": "fldc8bSs8pvvehRj4",
    "line_items": "fldnyVwGTZbOo7rac",
    "order_date": "fldQv5WMQUw6DZyaB",
    "payment_status": "fldShlloS9IOAdweI",
    "total_amount": "fld5VUYLDQ2mWlSFk",
    "parent_email": "fldUkIDUz6H9zbp5A",
}

TASKS_TABLE_ID = "tblf59JyawJjgDqPJ"
TASKS_FIELDS = {
    "task_id": "fldamrxMhlojO6vFN",
    "template_id": "fldVXRwHmCbmRwAoe",
    "event": "fldsyDbcBy1yzjbdI",
    "task_type": "fld1BhaWmhl0opQBU",
    "task_name": "fldKx1kQZX571SlUG",
    "description": "fldOBfsp7Ahso72rJ",
    "completion_type": "fldLgArrpofS6dlHk",
    "timeline_offset": "flddNjbhxVtoKvzeE",
    "deadline": "fld3KdpL5s6HKYm6t",
    "status": "fldTlA0kywaIji0BL",
    "completed_at": "fldi4dRSjgwwz0IHt",
    "completed_by": "fldrQywGMFsIip8Si",
    "completion_data": "fldvz5xSQDzkyBzoB",
    "go_order": "fldSaCFHlKVPjnj8e",
    "parent_task": "fldAKtaeiFasxhowc",
    "created_at": "fldt32Ff4DXY8ax47",
}

# Guesstimate orders: internal supplier orders, shown as GO-0001
GUESSTIMATE_ORDERS_TABLE_ID = "tblZbWdS9hK6XnBpJ"
GUESSTIMATE_ORDERS_FIELDS = {
    "go_id": "fldTFRKtwp5Gi8pS4",
    "event": "fldKGyNQSp4rB50lk",
    "order_ids": "fld6v31dMVNUPCX4u",
    "order_date": "fldwLQ9rME42p9eLI",
    "order_amount": "fldWRhvUBRYcF4t88",
    "contains": "fld8ybh3iGdU0zlvc",
    "date_completed": "fldB2KkhfGVYRMbuM",
    "created_at": "fld6egSC7LM5XYimi",
}

EINRICHTUNGEN_TABLE_ID = "tblLPUjLnHZ0Y4mdB"
EINRICHTUNGEN_FIELDS = {
    "name": "fldDdkFSePi7EpA7y",
    "logo_key": "fldoJqXBanQCXjFBs",
}

TEAMS_REGIONEN_TABLE_ID = "tbla4crQMICKFdX5e"
TEAMS_REGIONEN_FIELDS = {
    "name": "fld1ExAmVqNrf8QTT",
}
