"""Plain data models for collection trees and request documents."""
