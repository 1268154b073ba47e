from abc import ABC, abstractmethod

class DashboardEvents(ABC):
    @abstractmethod
    def on_mode_change(self, mode, text): pass
    @abstractmethod
    def on_devices_changed(self, devices): pass
    @abstractmethod
    def on_selection_changed(self, files_text, ready_text): pass
    @abstractmethod
    def on_send_refused(self, message): pass
    @abstractmethod
    def on_transfer_update(self, transfer): pass
    @abstractmethod
    def on_incoming_request(self, request): pass
    @abstractmethod
    def on_incoming_resolved(self, decision, file_name): pass
    @abstractmethod
    def on_trust_change(self, state, text): pass
    @abstractmethod
    def on_settings_change(self, summary): pass
    @abstractmethod
    def on_accessibility_change(self, flags): pass
