import json, sys
import requests

BASE = "http://127.0.0.1:8000"
ADMIN_SECRET = sys.argv[1] if len(sys.argv) > 1 else ""

# 1x1 transparent PNG
PNG = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)

resp = requests.post(
    BASE + "/api/orders",
    files={"screenshot": ("proof.png", PNG, "image/png")},
    data={"userEmail": "buyer@example.com", "expectedAmount": "50.00", "contactInfo": "@buyer"},
)
print("Submit:", resp.status_code, resp.text)

if ADMIN_SECRET:
    headers = {"X-Admin-Secret": ADMIN_SECRET}
    page = requests.get(BASE + "/api/admin/requests", params={"limit": 5}, headers=headers).json()
    print("Recent claims:", json.dumps(page, indent=2))
