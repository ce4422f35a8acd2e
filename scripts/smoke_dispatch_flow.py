#!/usr/bin/env python3
"""
Prueba de humo del flujo completo contra una API en ejecución.

Crea un pedido en efectivo y uno por transferencia y los lleva hasta
entregado. Ejecutar con la API arriba: python scripts/smoke_dispatch_flow.py
"""

import asyncio
import os

import httpx

from somar.core.auth.service import AuthService

BASE_URL = os.getenv("SOMAR_API_URL", "http://localhost:8000/api/v1")

DISPATCHER = {"sub": "operator-1", "role": "dispatcher", "email": "despacho@somar.co"}
RIDER = {"sub": "rider-luis", "role": "rider", "email": "luis@somar.co"}

RECEIPT = ("factura.png", b"\x89PNG\r\n\x1a\nsmoke-test", "image/png")


class DispatchFlowTester:
    def __init__(self):
        self.client = httpx.AsyncClient(base_url=BASE_URL, timeout=30)
        self.headers = {
            "dispatcher": {"Authorization": f"Bearer {AuthService.create_access_token(DISPATCHER)}"},
            "rider": {"Authorization": f"Bearer {AuthService.create_access_token(RIDER)}"},
        }

    async def step(self, role: str, method: str, path: str, expected: int = 200, **kwargs):
        response = await self.client.request(method, path, headers=self.headers[role], **kwargs)
        mark = "✅" if response.status_code == expected else "❌"
        print(f"{mark} {method} {path} -> {response.status_code}")
        if response.status_code != expected:
            print(f"   {response.text}")
            raise RuntimeError(f"{path} respondió {response.status_code}, se esperaba {expected}")
        return response.json()

    async def create_order(self, **fields):
        payload = {
            "order_type": "purchase",
            "payment_method": "cash",
            "customer_name": "Cliente Smoke",
            "delivery_address": "Calle 1 # 1-01",
            "shipping_fee": "100",
            "purchase_total": "500",
            "tip": "20",
        }
        payload.update(fields)
        data = await self.step("dispatcher", "POST", "/dispatch/orders", expected=201, json=payload)
        order = data["order"]
        print(f"   📦 {order['order_number']} a cobrar: {order['amount_due_from_customer']}")
        return order

    async def ride_to_customer(self, order_id: int):
        base = f"/courier/orders/{order_id}"
        await self.step("rider", "POST", f"{base}/accept")
        await self.step("rider", "POST", f"{base}/reach-merchant")
        await self.step(
            "rider", "POST", f"{base}/confirm-purchase",
            data={"total": "480"}, files={"receipt": RECEIPT}
        )
        await self.step("rider", "POST", f"{base}/depart")
        await self.step("rider", "POST", f"{base}/reach-customer")

    async def test_cash_flow(self):
        print("\n💵 Test: pedido en efectivo")
        custody = await self.step("rider", "GET", "/courier/custody")
        if not custody["eligible_for_cash_orders"]:
            print("⚠️ La guaca del rider está llena; se omite el flujo en efectivo")
            return

        order = await self.create_order()
        await self.ride_to_customer(order["id"])
        await self.step("rider", "POST", f"/courier/orders/{order['id']}/finalize")

        custody = await self.step("rider", "GET", "/courier/custody")
        print(f"   💰 Guaca: {custody['cash_on_hand']} / {custody['cash_custody_limit']}")

    async def test_transfer_flow(self):
        print("\n🏦 Test: pedido por transferencia")
        order = await self.create_order(payment_method="bank_transfer")
        await self.ride_to_customer(order["id"])

        base = f"/courier/orders/{order['id']}"
        await self.step("rider", "POST", f"{base}/finalize", expected=409)
        await self.step("rider", "POST", f"{base}/transfer-receipt", files={"receipt": RECEIPT})
        await self.step("dispatcher", "POST", f"/dispatch/orders/{order['id']}/validate-transfer")
        await self.step("rider", "POST", f"{base}/finalize")

    async def run(self):
        print(f"🚀 Prueba de humo contra {BASE_URL}")
        try:
            await self.step("rider", "GET", "/courier/me")
            await self.test_cash_flow()
            await self.test_transfer_flow()
            stats = await self.step("rider", "GET", "/courier/stats")
            print(f"\n📊 Entregas: {stats['stats']['total_orders']} - Ganancias: {stats['stats']['total_earnings']}")
        finally:
            await self.client.aclose()


if __name__ == "__main__":
    asyncio.run(DispatchFlowTester().run())
