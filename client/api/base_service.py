#!/usr/bin/env python
# Base service for API communication
import asyncio
import logging
import time
import requests
from typing import Dict, Any, Optional, Union

from client.utils.config import config
from client.session.state import SessionState, session_state

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class APIError(Exception):
    """Exception raised for API errors"""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API Error ({status_code}): {detail}")
    
    @property
    def is_auth_error(self) -> bool:
        return self.status_code == 401


class BaseService:
    """
    Base class for API services.

    Requests run in a worker thread so the event loop stays responsive. A
    401 response triggers one token refresh and one retry of the request.
    """
    
    def __init__(self, api_url: Optional[str] = None, state: Optional[SessionState] = None):
        self.api_url = api_url or config.api_url
        self.state = state or session_state
    
    def _get_headers(self) -> Dict[str, str]:
        """Get common headers for API requests"""
        headers = {
            "Content-Type": "application/json"
        }
        
        if self.state.access_token:
            headers["Authorization"] = f"Bearer {self.state.access_token}"
            
        return headers
    
    def _handle_response(self, response: requests.Response) -> Union[Dict[str, Any], list]:
        """Process API response and handle errors"""
        if 200 <= response.status_code < 300:
            if response.status_code == 204:  # No content
                return {}
                
            try:
                return response.json()
            except ValueError:
                return {"message": response.text}
        
        try:
            error_data = response.json()
            detail = error_data.get("error") or error_data.get("detail") or "Unknown error"
        except (ValueError, AttributeError):
            detail = response.text or "Unknown error"
            
        raise APIError(response.status_code, str(detail))
    
    def _send(self, method: str, endpoint: str, params: Optional[Dict[str, Any]], data: Optional[Dict[str, Any]]):
        url = f"{self.api_url}{endpoint}"
        try:
            response = requests.request(
                method,
                url,
                headers=self._get_headers(),
                params=params,
                json=data,
                timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise APIError(503, f"Request failed: {str(e)}")
        return self._handle_response(response)
    
    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        retry_auth: bool = True
    ) -> Union[Dict[str, Any], list]:
        """Make a request, refreshing the access token once on 401"""
        try:
            return await asyncio.to_thread(self._send, method, endpoint, params, data)
        except APIError as e:
            if not (e.is_auth_error and retry_auth):
                raise
            logger.info(f"{method} {endpoint} returned 401, refreshing token")
            if not await self.refresh_access_token():
                raise APIError(401, "Session expired. Please log in again.")
            return await asyncio.to_thread(self._send, method, endpoint, params, data)
    
    def remember_session(self) -> None:
        """Save the session tokens with the time they were issued"""
        auth_data = self.state.auth_data()
        auth_data["timestamp"] = time.time()
        config.save_auth(auth_data)
    
    async def refresh_access_token(self) -> bool:
        """Exchange the refresh token for a new access token"""
        if not self.state.refresh_token:
            return False
        try:
            tokens = await asyncio.to_thread(
                self._send,
                "POST",
                "/auth/refresh",
                None,
                {"refresh_token": self.state.refresh_token}
            )
        except APIError as e:
            logger.warning(f"Token refresh failed: {e.detail}")
            return False
        
        self.state.set_auth(tokens)
        self.remember_session()
        return True
    
    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None):
        """Make GET request to API"""
        return await self.request("GET", endpoint, params=params)
    
    async def post(self, endpoint: str, data: Dict[str, Any]):
        """Make POST request to API"""
        return await self.request("POST", endpoint, data=data)
    
    async def put(self, endpoint: str, data: Dict[str, Any]):
        """Make PUT request to API"""
        return await self.request("PUT", endpoint, data=data)
