#!/usr/bin/env python
# Configuration for the property chat client
import os
import json
import logging
from typing import Dict, Any, List, Optional
import argparse

logger = logging.getLogger(__name__)


class Config:
    """Configuration management for the property chat client"""
    
    # Default values
    DEFAULT_API_URL = "http://localhost:8000/api"
    DEFAULT_WS_URL = "ws://localhost:8000/ws/realtime"
    DEFAULT_ATTACH_TIMEOUT = 10.0
    DEFAULT_MAX_ATTACH_ATTEMPTS = 4
    DEFAULT_BACKOFF_BASE = 1.0
    DEFAULT_BACKOFF_MAX = 8.0
    DEFAULT_HISTORY_LIMIT = 50
    
    def __init__(self, config_dir: Optional[str] = None):
        self.api_url = self.DEFAULT_API_URL
        self.ws_url = self.DEFAULT_WS_URL
        self.attach_timeout = self.DEFAULT_ATTACH_TIMEOUT
        self.max_attach_attempts = self.DEFAULT_MAX_ATTACH_ATTEMPTS
        self.backoff_base = self.DEFAULT_BACKOFF_BASE
        self.backoff_max = self.DEFAULT_BACKOFF_MAX
        self.history_limit = self.DEFAULT_HISTORY_LIMIT
        
        config_dir = config_dir or os.environ.get("PROPERTYCHAT_HOME") or os.path.expanduser("~/.propertychat")
        self.config_file = os.path.join(config_dir, "config.json")
        self.auth_file = os.path.join(config_dir, "auth.json")
        
        # Load config if exists
        self.load_config()
    
    def as_dict(self) -> Dict[str, Any]:
        return {
            "api_url": self.api_url,
            "ws_url": self.ws_url,
            "attach_timeout": self.attach_timeout,
            "max_attach_attempts": self.max_attach_attempts,
            "backoff_base": self.backoff_base,
            "backoff_max": self.backoff_max,
            "history_limit": self.history_limit,
        }
    
    def load_config(self):
        """Load configuration from file if it exists"""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, 'r') as f:
                    config_data = json.load(f)
                for key, value in config_data.items():
                    if key in self.as_dict():
                        setattr(self, key, value)
        except (OSError, ValueError) as e:
            logger.warning(f"Error loading config: {e}")
    
    def save_config(self):
        """Save current configuration to file"""
        try:
            os.makedirs(os.path.dirname(self.config_file), exist_ok=True)
            with open(self.config_file, 'w') as f:
                json.dump(self.as_dict(), f, indent=2)
        except OSError as e:
            logger.warning(f"Error saving config: {e}")
    
    def load_auth(self) -> Dict[str, Any]:
        """Load saved authentication data if it exists"""
        try:
            if os.path.exists(self.auth_file):
                with open(self.auth_file, 'r') as f:
                    return json.load(f)
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Error loading auth data: {e}")
            return {}
    
    def save_auth(self, auth_data: Dict[str, Any]):
        """Save authentication data for auto-login"""
        try:
            os.makedirs(os.path.dirname(self.auth_file), exist_ok=True)
            with open(self.auth_file, 'w') as f:
                json.dump(auth_data, f, indent=2)
        except OSError as e:
            logger.warning(f"Error saving auth data: {e}")
    
    def clear_auth(self):
        """Clear saved authentication data"""
        if os.path.exists(self.auth_file):
            os.remove(self.auth_file)
    
    def parse_args(self, argv: Optional[List[str]] = None):
        """Parse command line arguments"""
        parser = argparse.ArgumentParser(description='Property Chat Client')
        parser.add_argument('--api-url', help='Backend API URL', default=self.api_url)
        parser.add_argument('--ws-url', help='Realtime WebSocket URL', default=self.ws_url)
        parser.add_argument('--attach-timeout', type=float, help='Seconds to wait for a channel attach', default=self.attach_timeout)
        parser.add_argument('--max-attach-attempts', type=int, help='Attach attempts before giving up', default=self.max_attach_attempts)
        parser.add_argument('--chat-with', help='Email of an advertiser to open a chat with')
        parser.add_argument('--no-auto-login', action='store_true', help='Disable auto-login')
        parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
        
        args = parser.parse_args(argv)
        
        # Update config with command line values
        self.api_url = args.api_url
        self.ws_url = args.ws_url
        self.attach_timeout = args.attach_timeout
        self.max_attach_attempts = args.max_attach_attempts
        
        # Save updated config
        self.save_config()
        
        return args


# Global config instance
config = Config()
