# Supabase REST surface used by supasync; update if the project API changes.

AUTH = {
    "sign_in": {
        "method": "POST",
        "path": "/auth/v1/token?grant_type=password",
    },
    "refresh": {
        "method": "POST",
        "path": "/auth/v1/token?grant_type=refresh_token",
    },
    "sign_up": {
        "method": "POST",
        "path": "/auth/v1/signup",
    },
    "sign_out": {
        "method": "POST",
        "path": "/auth/v1/logout",
    },
    "user": {
        "method": "GET",
        "path": "/auth/v1/user",
    },
}

# {table} is substituted with the configured table name
RECORDS = {
    "list": {
        "method": "GET",
        "path": "/rest/v1/{table}",
    },
    "insert": {
        "method": "POST",
        "path": "/rest/v1/{table}",
    },
    "update": {
        "method": "PATCH",
        "path": "/rest/v1/{table}",
    },
    "delete": {
        "method": "DELETE",
        "path": "/rest/v1/{table}",
    },
}

STORAGE = {
    "list": {
        "method": "POST",
        "path": "/storage/v1/object/list/{bucket}",
    },
    "upload": {
        "method": "POST",
        "path": "/storage/v1/object/{bucket}/{path}",
    },
    "download": {
        "method": "GET",
        "path": "/storage/v1/object/{bucket}/{path}",
    },
    "remove": {
        "method": "DELETE",
        "path": "/storage/v1/object/{bucket}",
    },
    "public_url": {
        "method": "GET",
        "path": "/storage/v1/object/public/{bucket}/{path}",
    },
}
