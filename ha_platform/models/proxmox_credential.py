"""
Proxmox API 자격 증명 모델
"""
from datetime import datetime
from ha_platform import db


class ProxmoxCredential(db.Model):
    """Proxmox API 토큰 정보"""
    __tablename__ = 'proxmox_creds'

    id = db.Column(db.Integer, primary_key=True)
    credential_name = db.Column(db.String(255), nullable=False)
    api_user = db.Column(db.String(255), nullable=False)
    api_token = db.Column(db.String(255), nullable=False)  # 응답에 포함하지 않음
    api_url = db.Column(db.String(255), nullable=False)
    api_token_id = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<ProxmoxCredential {self.credential_name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'credential_name': self.credential_name,
            'api_user': self.api_user,
            'api_url': self.api_url,
            'api_token_id': self.api_token_id,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    @classmethod
    def latest(cls):
        """가장 최근에 등록된 자격 증명"""
        return cls.query.order_by(cls.id.desc()).first()
